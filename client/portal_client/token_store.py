# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""Local persistence of the session token across restarts."""

import json
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Fixed key under which the single session token is stored
STORAGE_KEY = "user_session_token"


class TokenStore:
    """
    One string in a small JSON file.  Read once at construction, written
    through on every change.
    """

    def __init__(self, path):
        self.path = Path(path)
        self._token: Optional[str] = self._read()

    @property
    def token(self) -> Optional[str]:
        return self._token

    def save(self, token: str) -> None:
        self._token = token
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({STORAGE_KEY: token}), encoding="utf-8")

    def clear(self) -> None:
        self._token = None
        self.path.unlink(missing_ok=True)

    def _read(self) -> Optional[str]:
        if not self.path.is_file():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("ignoring unreadable token store %s", self.path)
            return None
        token = data.get(STORAGE_KEY) if isinstance(data, dict) else None
        return token if isinstance(token, str) and token else None
