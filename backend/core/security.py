# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Central security module.  All cryptographic primitives and auth guards live
here.  No other module should touch raw crypto directly.

Responsibilities
----------------
1. Password hashing / verification          (passlib pbkdf2_sha256)
2. Hidden-target encryption / decryption    (AES-256-GCM)
3. JWT creation / decoding / revocation     (PyJWT / HS256)
4. FastAPI dependency guards                (get_current_user, require_admin)
"""

import base64
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt as _jwt        # PyJWT
from passlib.hash import pbkdf2_sha256 as _pbkdf2  # pure Python, no binary deps
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from core.config import settings
from core.errors import AccessDeniedError, AccountBlockedError, AuthenticationError
from database import get_db

# ---------------------------------------------------------------------------
# 1.  pbkdf2_sha256 – password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Hash a plaintext password with PBKDF2-SHA256 (600 000 rounds)."""
    return _pbkdf2.using(rounds=600_000).hash(plain)


def verify_password(plain: str, stored_hash: str) -> bool:
    """
    Constant-time verification of a plaintext password against a
    pbkdf2_sha256 hash produced by :func:`hash_password`.
    """
    return _pbkdf2.verify(plain, stored_hash)


# ---------------------------------------------------------------------------
# 2.  AES-256-GCM – hidden target encryption
# ---------------------------------------------------------------------------


def _get_master_key() -> bytes:
    """
    Decode the base64-encoded MASTER_ENCRYPTION_KEY.  Called at use-time so
    the key is never cached at module load.  Must be exactly 32 bytes.
    """
    key = base64.b64decode(settings.master_encryption_key)
    if len(key) != 32:
        raise RuntimeError("MASTER_ENCRYPTION_KEY must decode to exactly 32 bytes")
    return key


def encrypt_value(plaintext: str) -> tuple[str, str]:
    """
    Encrypt *plaintext* with AES-256-GCM under a fresh 96-bit nonce.

    Returns
    -------
    encrypted_b64 : str   base64( ciphertext || 16-byte GCM tag )
    iv_b64        : str   base64( 12-byte nonce )
    """
    iv = secrets.token_bytes(12)
    ct_and_tag = AESGCM(_get_master_key()).encrypt(iv, plaintext.encode("utf-8"), None)
    return (
        base64.b64encode(ct_and_tag).decode("ascii"),
        base64.b64encode(iv).decode("ascii"),
    )


def decrypt_value(encrypted_b64: str, iv_b64: str) -> str:
    """
    Decrypt a value produced by :func:`encrypt_value`.

    Raises ``ValueError`` if the GCM authentication tag does not match.
    """
    iv = base64.b64decode(iv_b64)
    ct_and_tag = base64.b64decode(encrypted_b64)
    try:
        plaintext_bytes = AESGCM(_get_master_key()).decrypt(iv, ct_and_tag, None)
    except Exception as exc:
        raise ValueError("Decryption failed – data may be tampered") from exc
    return plaintext_bytes.decode("utf-8")


# ---------------------------------------------------------------------------
# 3.  JWT – access tokens
# ---------------------------------------------------------------------------


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign a JWT with HS256.

    *data* should contain at minimum: sub (email), user_id.  ``exp`` and a
    unique ``jti`` (used for revocation) are added automatically.
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode["exp"] = expire
    to_encode["jti"] = uuid.uuid4().hex
    return _jwt.encode(to_encode, settings.secret_key, algorithm="HS256")


def decode_access_token(token: str) -> dict:
    """
    Decode and verify a JWT.  Raises :class:`AuthenticationError` on any
    failure (expired, bad signature, malformed, missing claims).
    """
    try:
        claims = _jwt.decode(token, settings.secret_key, algorithms=["HS256"])
    except _jwt.PyJWTError:
        raise AuthenticationError("Invalid or expired token")
    if "user_id" not in claims or "jti" not in claims:
        raise AuthenticationError("Invalid or expired token")
    return claims


@dataclass
class Principal:
    """An authenticated caller: the credential row plus the token that proved it."""

    user: object
    claims: dict

    @property
    def user_id(self) -> int:
        return self.user.id


def resolve_principal(db: Session, token: str) -> Principal:
    """
    Turn a bearer token into a :class:`Principal`.

    Raises 401 if the token is invalid, revoked, or its user is gone.
    """
    claims = decode_access_token(token)

    # Lazy import to avoid circular dependency at module load time
    from models.revoked_token import RevokedToken  # noqa: E402
    from models.user import User  # noqa: E402

    if db.get(RevokedToken, claims["jti"]) is not None:
        raise AuthenticationError("Session has been signed out")

    user = db.get(User, claims["user_id"])
    if user is None:
        raise AuthenticationError("User not found")
    return Principal(user=user, claims=claims)


def revoke_access_token(db: Session, claims: dict) -> None:
    """
    Record the token's jti so every later request carrying it is rejected.
    Idempotent.  The caller commits.
    """
    from models.revoked_token import RevokedToken  # noqa: E402

    if db.get(RevokedToken, claims["jti"]) is not None:
        return
    db.add(RevokedToken(
        jti=claims["jti"],
        user_id=claims.get("user_id"),
        expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
    ))


# ---------------------------------------------------------------------------
# 4.  FastAPI dependency guards
# ---------------------------------------------------------------------------

# The tokenUrl here is only used by the auto-generated OpenAPI docs;
# the actual login endpoint is POST /auth/login.  auto_error=False so that
# "no token" reaches the access gate as "no identity" instead of a 401.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def get_principal(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> Optional[Principal]:
    """Dependency: the authenticated caller, or None without a bearer token."""
    if not token:
        return None
    return resolve_principal(db, token)


def require_principal(principal: Optional[Principal] = Depends(get_principal)) -> Principal:
    if principal is None:
        raise AuthenticationError("Missing authorization header")
    return principal


def get_current_identity(
    principal: Optional[Principal] = Depends(get_principal),
    db: Session = Depends(get_db),
):
    """
    Dependency: run the access gate.  Returns the Profile, or None for an
    anonymous caller.  Expired accounts are signed out and rejected with 401.
    """
    from core.access import resolve_identity  # noqa: E402

    return resolve_identity(db, principal)


def get_current_user(profile=Depends(get_current_identity)):
    """Dependency: like :func:`get_current_identity` but anonymous callers get 401."""
    if profile is None:
        raise AuthenticationError("Not authenticated")
    return profile


def require_unblocked(profile=Depends(get_current_user)):
    """
    Dependency: blocked accounts stay signed in but are denied every
    resource behind this guard with 403.
    """
    if profile.is_blocked:
        raise AccountBlockedError()
    return profile


def require_admin(profile=Depends(require_unblocked)):
    """
    Dependency: wraps :func:`require_unblocked` and additionally asserts
    ``role == 'admin'``.  Raises 403 otherwise.
    """
    if profile.role != "admin":
        raise AccessDeniedError("Admin access required")
    return profile


# -- IP Address extraction ----------------------------------------------------


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP address from the request.
    Checks X-Forwarded-For header first (for proxies), then falls back to client host.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # X-Forwarded-For can contain multiple IPs, take the first (original client)
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"
