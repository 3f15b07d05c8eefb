# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
FastAPI application.

Responsibilities
----------------
* Instantiate the FastAPI app and its error handlers.
* Register CORS and request-logging middleware.
* Mount the feature routers (auth, session, domains, admin, relay).
* Serve stored domain images read-only.
* Expose a /health endpoint for container liveness checks.

Production note
---------------
CORS origins come from ``settings.cors_origins`` (localhost by default).
Set them to the exact frontend origin before deploying.
"""

import time
from pathlib import Path

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from fastapi.staticfiles import StaticFiles

from auth.router import router as auth_router
from admin.router import router as admin_router
from domains.router import admin_router as admin_domains_router
from domains.router import router as domains_router
from relay.router import router as relay_router
from sessions.router import router as session_router
from core.config import settings
from core.errors import register_error_handlers
from core.logger import logger

app = FastAPI(title="Masked Domain Portal", version="1.0.0")

register_error_handlers(app)

# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)


# ---------------------------------------------------------------------------
# Request-logging middleware
# ---------------------------------------------------------------------------
# Only the path is logged, never the query string: /redirect carries the
# access token there.


class _RequestLogMiddleware(BaseHTTPMiddleware):
    """Log method, path, client IP, response status and latency (ms)."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        client_ip = request.client.host if request.client else "unknown"

        logger.info(
            "%s %s | client=%s status=%d latency=%.1fms",
            request.method,
            request.url.path,
            client_ip,
            response.status_code,
            elapsed_ms,
        )
        return response


app.add_middleware(_RequestLogMiddleware)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(auth_router)
app.include_router(session_router)
app.include_router(domains_router)
app.include_router(admin_router)
app.include_router(admin_domains_router)
app.include_router(relay_router)


@app.on_event("startup")
async def _on_startup():
    logger.info("Masked Domain Portal starting up")


@app.on_event("shutdown")
async def _on_shutdown():
    logger.info("Masked Domain Portal shutting down")


@app.get("/health")
def health():
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Domain images
# ---------------------------------------------------------------------------
# check_dir=False: the directory is created on the first upload.
_IMAGE_DIR = Path(settings.image_dir)

app.mount(
    settings.image_base_url,
    StaticFiles(directory=str(_IMAGE_DIR), check_dir=False),
    name="images",
)
