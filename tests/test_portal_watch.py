import argparse
import asyncio
import importlib.util
from pathlib import Path

import httpx

_SCRIPT = Path(__file__).resolve().parents[1] / "bin" / "portal_watch.py"
_spec = importlib.util.spec_from_file_location("portal_watch", _SCRIPT)
portal_watch = importlib.util.module_from_spec(_spec)
_spec.loader.exec_module(portal_watch)


def _args(tmp_path):
    return argparse.Namespace(
        url="http://portal.test",
        email="blocked@example.com",
        state=str(tmp_path / "session.json"),
        interval=0.01,
        verbose=False,
    )


def test_blocked_account_keeps_watching_until_superseded(tmp_path, capsys):
    validations = []

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/auth/login":
            return httpx.Response(
                200, json={"access_token": "jwt", "token_type": "bearer", "session_token": "s-1"}
            )
        if path == "/auth/me":
            return httpx.Response(
                200, json={"email": "blocked@example.com", "role": "user", "is_blocked": True}
            )
        if path == "/domains":
            return httpx.Response(403, json={"error": "Your account has been blocked."})
        if path == "/session":
            validations.append(request)
            # Another device takes over after a couple of checks
            return httpx.Response(200, json={"valid": len(validations) < 3})
        return httpx.Response(404, json={"error": "Not found"})

    code = asyncio.run(
        portal_watch._run(_args(tmp_path), "pw", transport=httpx.MockTransport(handler))
    )

    assert code == 0
    captured = capsys.readouterr()
    assert "Domains unavailable: Your account has been blocked." in captured.err
    assert "Signed out: session is no longer active" in captured.out
    assert len(validations) == 3
