# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Domain image storage.

Images live under ``settings.image_dir`` as ``domains/<domain_id>-<millis>.<ext>``
and are served read-only by ``main.py`` at ``settings.image_base_url``.  The
public URL is what gets stored on the Domain row.
"""

import time
from pathlib import Path
from typing import Optional

from core.config import settings
from core.errors import InvalidRequestError
from core.logger import logger

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}
_FOLDER = "domains"


class ImageStore:
    def __init__(self, root: Optional[str] = None, base_url: Optional[str] = None):
        self.root = Path(root or settings.image_dir)
        self.base_url = (base_url or settings.image_base_url).rstrip("/")

    def save(self, domain_id: int, filename: str, data: bytes) -> str:
        """Write *data* and return its public URL.  Validates type and size."""
        ext = Path(filename or "").suffix.lower().lstrip(".")
        if ext not in ALLOWED_EXTENSIONS:
            raise InvalidRequestError(
                "Unsupported image type. Allowed: " + ", ".join(sorted(ALLOWED_EXTENSIONS))
            )
        if not data:
            raise InvalidRequestError("Image file is empty")
        if len(data) > settings.max_image_bytes:
            limit_mb = settings.max_image_bytes // (1024 * 1024)
            raise InvalidRequestError(f"Image must be {limit_mb} MB or smaller")

        name = f"{domain_id}-{int(time.time() * 1000)}.{ext}"
        target = self.root / _FOLDER / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.info("domain image stored | domain_id=%s file=%s bytes=%d", domain_id, name, len(data))
        return f"{self.base_url}/{_FOLDER}/{name}"

    def delete(self, public_url: str) -> bool:
        """
        Remove the file behind *public_url*.  Only the last two path segments
        are used, so a stored URL can never point outside the image root.
        """
        parts = [p for p in public_url.split("/") if p]
        if len(parts) < 2 or parts[-2] != _FOLDER:
            return False
        path = self.root / _FOLDER / Path(parts[-1]).name
        if not path.is_file():
            return False
        path.unlink()
        logger.info("domain image removed | file=%s", path.name)
        return True


def get_image_store() -> ImageStore:
    """FastAPI dependency; tests override it to point at a temp directory."""
    return ImageStore()
