# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Root composition of a portal client: one API client, one token store and
one session guard, created together and torn down on sign-out.
"""

import asyncio
import logging
from typing import Optional

import httpx

from portal_client.api import PortalClient, PortalClientError
from portal_client.guard import DEFAULT_CHECK_INTERVAL, SessionGuard
from portal_client.token_store import TokenStore

logger = logging.getLogger(__name__)


class PortalApp:
    def __init__(
        self,
        base_url: str,
        state_path,
        interval: float = DEFAULT_CHECK_INTERVAL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client = PortalClient(base_url, transport=transport)
        self.store = TokenStore(state_path)
        self.guard = SessionGuard(
            self.client, self.store, interval=interval, on_terminated=self._on_terminated
        )
        self.identity: Optional[dict] = None
        self.notice: Optional[str] = None
        self.signed_out = asyncio.Event()

    @property
    def signed_in(self) -> bool:
        return self.client.access_token is not None

    async def sign_in(self, email: str, password: str) -> dict:
        """
        Log in and start guarding the session.  If no session can be
        established the login is undone and the error re-raised.
        """
        self.notice = None
        self.signed_out.clear()
        body = await self.client.sign_in(email, password)

        try:
            token = body.get("session_token")
            if token:
                self.guard.adopt(token)
            else:
                await self.guard.begin()
            self.identity = await self.client.current_identity()
        except PortalClientError:
            logger.exception("could not establish a session after login")
            await self.sign_out()
            raise
        return self.identity

    def resume(self, access_token: str) -> bool:
        """
        Pick up after a restart: reuse *access_token* and, when a session
        token survived in the store, restart the guard.  Must run inside the
        event loop.
        """
        self.client.access_token = access_token
        if not self.store.token:
            return False
        self.signed_out.clear()
        self.guard.start()
        return True

    async def sign_out(self) -> None:
        """Stop guarding and drop the local token before telling the server."""
        await self.guard.stop()
        self.store.clear()
        try:
            await self.client.sign_out()
        except PortalClientError as exc:
            logger.warning("server-side sign-out failed: %s", exc.message)
        finally:
            self.identity = None
            self.signed_out.set()

    async def aclose(self) -> None:
        await self.guard.stop()
        await self.client.aclose()

    async def _on_terminated(self, reason: str) -> None:
        # Local only: a server-side logout would also end the new owner's session
        self.notice = reason
        self.client.access_token = None
        self.identity = None
        self.signed_out.set()
