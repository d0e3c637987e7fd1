# fintrack/security.py
"""
Credential service and request gate.

Passwords are bcrypt-hashed through passlib. Tokens are HS256 JWTs that
carry the user id and expire after ``token_expiry_days``.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Header
from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import get_settings
from .errors import AuthError

_pwd_context = None


def _context() -> CryptContext:
    global _pwd_context
    if _pwd_context is None:
        _pwd_context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=get_settings().bcrypt_rounds,
        )
    return _pwd_context


# -----------------------------
# Password helpers
# -----------------------------
def hash_password(password: str) -> str:
    return _context().hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return _context().verify(plain, hashed)
    except ValueError:
        # unrecognised or corrupt hash
        return False


# -----------------------------
# Tokens
# -----------------------------
def issue_token(user_id: int) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "userId": user_id,
        "iat": now,
        "exp": now + timedelta(days=settings.token_expiry_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def validate_token(token: str) -> Optional[int]:
    """Return the user id in a valid token, None for anything else."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    user_id = payload.get("userId")
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        return None
    return user_id


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        return None
    return parts[1]


# -----------------------------
# Request gate (FastAPI dependencies)
# -----------------------------
def get_current_user_id(authorization: Optional[str] = Header(None)) -> int:
    token = extract_bearer(authorization)
    if not token:
        raise AuthError("Missing authentication token")
    user_id = validate_token(token)
    if user_id is None:
        raise AuthError("Invalid or expired token")
    return user_id


def get_optional_user_id(authorization: Optional[str] = Header(None)) -> Optional[int]:
    """Like get_current_user_id, but lets anonymous requests through with None."""
    token = extract_bearer(authorization)
    if not token:
        return None
    return validate_token(token)
