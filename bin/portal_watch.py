# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Terminal client: sign in, list the assigned domains, then keep the session
alive until another device signs in with the same account (or the account
expires), at which point the program exits.

    python bin/portal_watch.py --url http://localhost:8000 --email me@example.com
"""

import argparse
import asyncio
import getpass
import logging
import os
import sys

_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_CLIENT_DIR   = os.path.join(_PROJECT_ROOT, "client")
if _CLIENT_DIR not in sys.path:
    sys.path.insert(0, _CLIENT_DIR)

from portal_client.api import PortalClientError  # noqa: E402
from portal_client.app import PortalApp          # noqa: E402


def _parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Sign in to the portal and guard the session.")
    parser.add_argument("--url", default="http://localhost:8000", help="portal base URL")
    parser.add_argument("--email", required=True)
    parser.add_argument(
        "--state",
        default=os.path.join(os.path.expanduser("~"), ".maskportal", "session.json"),
        help="where the session token is kept",
    )
    parser.add_argument("--interval", type=float, default=5.0, help="seconds between checks")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


async def _print_domains(app: PortalApp) -> None:
    try:
        rows = await app.client.list_domains()
    except PortalClientError as exc:
        # Blocked accounts stay signed in; keep guarding the session anyway
        print(f"Domains unavailable: {exc.message}", file=sys.stderr)
        return
    for row in rows:
        print(f"  {row['domain']['masked_name']:<32} {app.client.redirect_url(row['domain']['id'])}")


async def _run(args, password: str, transport=None) -> int:
    app = PortalApp(args.url, args.state, interval=args.interval, transport=transport)
    try:
        try:
            identity = await app.sign_in(args.email, password)
        except PortalClientError as exc:
            print(f"Sign-in failed: {exc.message}", file=sys.stderr)
            return 1

        print(f"Signed in as {identity['email']} ({identity['role']})")
        await _print_domains(app)

        try:
            await app.signed_out.wait()
        except asyncio.CancelledError:
            await app.sign_out()
            raise

        print(f"Signed out: {app.notice or 'bye'}")
        return 0
    finally:
        await app.aclose()


def main(argv=None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    )
    password = getpass.getpass("Password: ")
    try:
        return asyncio.run(_run(args, password))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
