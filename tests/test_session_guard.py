import asyncio
import json

import httpx

from portal_client.api import PortalClient
from portal_client.guard import SessionGuard
from portal_client.token_store import TokenStore

BASE_URL = "http://portal.test"


class FakePortal:
    """Just enough of POST /session for the guard."""

    def __init__(self):
        self.active = None
        self.issued = 0
        self.validations = 0
        self.failures = []  # consumed one per validate call

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content or b"{}")
        if request.url.path != "/session":
            return httpx.Response(404, json={"error": "Not found"})

        if body["action"] == "create":
            self.issued += 1
            self.active = f"token-{self.issued}"
            return httpx.Response(
                200, json={"success": True, "sessionToken": self.active, "sessionId": self.issued}
            )

        self.validations += 1
        if self.failures:
            failure = self.failures.pop(0)
            if isinstance(failure, Exception):
                raise failure
            if failure == "garbage":
                return httpx.Response(200, content=b"<html>proxy error</html>")
            return httpx.Response(failure, json={"error": "boom"})
        if body.get("sessionToken") == self.active:
            return httpx.Response(200, json={"valid": True})
        return httpx.Response(200, json={"valid": False, "error": "Invalid or inactive session"})


def _guard(tmp_path, portal, reasons):
    client = PortalClient(BASE_URL, transport=httpx.MockTransport(portal.handler))
    client.access_token = "jwt"
    store = TokenStore(tmp_path / "session.json")
    return SessionGuard(client, store, interval=0.01, on_terminated=reasons.append), client, store


async def _wait_for(predicate, timeout=2.0):
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout)


def test_guard_terminates_when_another_device_takes_over(tmp_path):
    portal = FakePortal()
    reasons = []

    async def scenario():
        guard, client, store = _guard(tmp_path, portal, reasons)
        token = await guard.begin()
        assert store.token == token

        await _wait_for(lambda: portal.validations >= 3)
        assert guard.running and reasons == []

        # Another device logs in and becomes the only active session
        portal.active = "token-from-device-2"
        await _wait_for(lambda: reasons)

        assert not guard.running
        assert store.token is None
        await client.aclose()

    asyncio.run(scenario())
    assert reasons == ["session is no longer active"]


def test_guard_keeps_going_through_transient_failures(tmp_path):
    portal = FakePortal()
    portal.failures = [httpx.ConnectError("down"), 503, 500]
    reasons = []

    async def scenario():
        guard, client, store = _guard(tmp_path, portal, reasons)
        await guard.begin()
        await _wait_for(lambda: portal.validations >= 5)

        assert guard.running
        assert store.token == "token-1"
        await guard.stop()
        await client.aclose()

    asyncio.run(scenario())
    assert reasons == []


def test_guard_treats_auth_rejection_as_final(tmp_path):
    portal = FakePortal()
    portal.failures = [401]
    reasons = []

    async def scenario():
        guard, client, _ = _guard(tmp_path, portal, reasons)
        await guard.begin()
        await _wait_for(lambda: reasons)
        assert not guard.running
        await client.aclose()

    asyncio.run(scenario())
    assert reasons == ["boom"]
    assert portal.validations == 1


def test_guard_without_token_terminates_immediately(tmp_path):
    portal = FakePortal()
    reasons = []

    async def scenario():
        guard, client, _ = _guard(tmp_path, portal, reasons)
        assert await guard.check_once() is False
        await client.aclose()

    asyncio.run(scenario())
    assert reasons == ["no session token"]
    assert portal.validations == 0


def test_stop_cancels_the_loop_and_is_idempotent(tmp_path):
    portal = FakePortal()
    reasons = []

    async def scenario():
        guard, client, store = _guard(tmp_path, portal, reasons)
        await guard.begin()
        await guard.stop()
        await guard.stop()
        assert not guard.running

        seen = portal.validations
        await asyncio.sleep(0.05)
        assert portal.validations == seen
        # Stopping is not signing out
        assert store.token == "token-1"
        await client.aclose()

    asyncio.run(scenario())
    assert reasons == []


def test_async_callbacks_are_awaited(tmp_path):
    portal = FakePortal()
    seen = []

    async def on_terminated(reason):
        await asyncio.sleep(0)
        seen.append(reason)

    async def scenario():
        client = PortalClient(BASE_URL, transport=httpx.MockTransport(portal.handler))
        guard = SessionGuard(
            client, TokenStore(tmp_path / "s.json"), interval=0.01, on_terminated=on_terminated
        )
        guard.adopt("stale-token")
        await _wait_for(lambda: seen)
        await client.aclose()

    asyncio.run(scenario())
    assert seen == ["session is no longer active"]


def test_guard_retries_after_other_client_errors(tmp_path):
    portal = FakePortal()
    portal.failures = [429, 404, "garbage"]
    reasons = []

    async def scenario():
        guard, client, store = _guard(tmp_path, portal, reasons)
        await guard.begin()
        await _wait_for(lambda: portal.validations >= 5)

        assert guard.running
        assert store.token == "token-1"
        await guard.stop()
        assert not guard.running
        await client.aclose()

    asyncio.run(scenario())
    assert reasons == []


def test_stop_survives_a_loop_that_already_died(tmp_path):
    portal = FakePortal()
    reasons = []

    async def scenario():
        guard, client, store = _guard(tmp_path, portal, reasons)

        async def broken_check():
            raise RuntimeError("unexpected")

        guard.check_once = broken_check
        await guard.begin()
        await asyncio.sleep(0.05)

        await guard.stop()
        assert not guard.running
        await client.aclose()

    asyncio.run(scenario())
