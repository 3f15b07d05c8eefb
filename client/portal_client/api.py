# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Async HTTP client for the portal API.

Errors are mapped onto three classes so that callers can tell "the server
said no" (:class:`AuthRejectedError`) from "the server could not answer"
(:class:`PortalUnavailableError`).
"""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class PortalClientError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class AuthRejectedError(PortalClientError):
    """401 or 403: bad credentials, revoked or expired login, blocked account."""


class PortalUnavailableError(PortalClientError):
    """Transport failure or 5xx.  Worth retrying later."""


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        message = body.get("error") or body.get("detail")
        if isinstance(message, str):
            return message
    return response.reason_phrase


class PortalClient:
    def __init__(self, base_url: str, transport: Optional[httpx.AsyncBaseTransport] = None,
                 timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.access_token: Optional[str] = None
        self._http = httpx.AsyncClient(base_url=self.base_url, transport=transport, timeout=timeout)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        headers = kwargs.pop("headers", {})
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        try:
            response = await self._http.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise PortalUnavailableError(f"Portal unreachable: {exc}") from exc

        if response.status_code >= 500:
            raise PortalUnavailableError(_error_message(response), response.status_code)
        if response.status_code in (401, 403):
            raise AuthRejectedError(_error_message(response), response.status_code)
        if response.status_code >= 400:
            raise PortalClientError(_error_message(response), response.status_code)
        return response

    # -- auth ------------------------------------------------------------------

    async def sign_in(self, email: str, password: str) -> dict:
        """Log in; keeps the access token and returns the full login body."""
        response = await self._request(
            "POST", "/auth/login", json={"email": email, "password": password}
        )
        body = response.json()
        self.access_token = body["access_token"]
        return body

    async def sign_out(self) -> None:
        if not self.access_token:
            return
        try:
            await self._request("POST", "/auth/logout")
        finally:
            self.access_token = None

    async def current_identity(self) -> Optional[dict]:
        response = await self._request("GET", "/auth/me")
        return response.json()

    # -- sessions --------------------------------------------------------------

    async def create_session(self) -> str:
        response = await self._request("POST", "/session", json={"action": "create"})
        return response.json()["sessionToken"]

    async def validate_session(self, session_token: str) -> bool:
        response = await self._request(
            "POST", "/session", json={"action": "validate", "sessionToken": session_token}
        )
        return bool(response.json().get("valid"))

    # -- domains ---------------------------------------------------------------

    async def list_domains(self) -> list:
        response = await self._request("GET", "/domains")
        return response.json()["domains"]

    def redirect_url(self, domain_id: int) -> str:
        """Absolute relay URL for *domain_id*, carrying the current access token."""
        url = httpx.URL(f"{self.base_url}/redirect").copy_merge_params(
            {"domain": str(domain_id), "token": self.access_token or ""}
        )
        return str(url)
