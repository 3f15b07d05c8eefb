# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Session guard – keeps checking that this client still owns the account's
single active session.

One asyncio task sleeps ``interval`` seconds, asks the server whether the
stored token is still the active one, and repeats.  Each check is awaited
before the next sleep, so two checks of the same guard never overlap.

* Server answers "invalid", or rejects the login (401/403): another device
  took over (or the account expired).  The token is cleared, the loop ends
  and ``on_terminated`` is called.  This is final, there is no retry.
* Anything else (server unreachable, 5xx, other 4xx, an unreadable body):
  logged; the next tick is the retry.
"""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

from portal_client.api import AuthRejectedError, PortalClient, PortalClientError
from portal_client.token_store import TokenStore

logger = logging.getLogger(__name__)

DEFAULT_CHECK_INTERVAL = 5.0

TerminationCallback = Callable[[str], Union[None, Awaitable[None]]]


class SessionGuard:
    def __init__(
        self,
        client: PortalClient,
        store: TokenStore,
        interval: float = DEFAULT_CHECK_INTERVAL,
        on_terminated: Optional[TerminationCallback] = None,
    ):
        self.client = client
        self.store = store
        self.interval = interval
        self.on_terminated = on_terminated
        self._task: Optional[asyncio.Task] = None

    @property
    def token(self) -> Optional[str]:
        return self.store.token

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def begin(self) -> str:
        """Ask the server for a fresh session, persist it and start checking."""
        token = await self.client.create_session()
        self.adopt(token)
        return token

    def adopt(self, token: str) -> None:
        """Persist a token issued elsewhere (e.g. by login) and start checking."""
        self.store.save(token)
        self.start()

    def start(self) -> None:
        """Start the check loop, replacing any loop that is already running."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        """Cancel the check loop and wait for it to finish.  Idempotent."""
        task, self._task = self._task, None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("session check loop had already failed")

    async def check_once(self) -> bool:
        """
        Run one validation.  Returns False when the session was terminated,
        True when it is still ours or the answer has to wait for the next tick.
        """
        token = self.store.token
        if not token:
            await self._terminate("no session token")
            return False

        try:
            valid = await self.client.validate_session(token)
        except AuthRejectedError as exc:
            await self._terminate(exc.message)
            return False
        except PortalClientError as exc:
            # 5xx, transport errors, 404, 429 and friends: ask again next tick
            logger.warning(
                "session check skipped, will retry | status=%s error=%s", exc.status_code, exc.message
            )
            return True
        except (ValueError, KeyError, AttributeError):
            logger.warning("session check got an unreadable answer, will retry", exc_info=True)
            return True

        if not valid:
            await self._terminate("session is no longer active")
            return False
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if not await self.check_once():
                return

    async def _terminate(self, reason: str) -> None:
        logger.info("session terminated: %s", reason)
        self.store.clear()
        if self._task is asyncio.current_task():
            self._task = None
        else:
            await self.stop()
        if self.on_terminated is not None:
            result = self.on_terminated(reason)
            if inspect.isawaitable(result):
                await result
