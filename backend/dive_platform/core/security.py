import hashlib
import os
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import jwt
from passlib.context import CryptContext

from dive_platform.core import config
from dive_platform.core.exceptions import UnauthorizedError

# Password hashing configuration
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=12)

JWT_ALGORITHM = "HS256"
_WEAK_SECRETS = (
    "dev-jwt-secret-change-me",
    "dev-jwt-refresh-secret-change-me",
    "dev-secret-change-me",
    "secret123",
)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against its hash; a missing hash never matches."""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def _validated_secret(env_name: str, default: str) -> str:
    secret = os.getenv(env_name, default)
    if config.is_production() and (secret in _WEAK_SECRETS or len(secret) < 32):
        raise ValueError(
            f"Production deployment requires strong {env_name} (min 32 chars). "
            f"Set {env_name} environment variable."
        )
    return secret


def get_jwt_secret_key() -> str:
    """Get the access-token secret with production validation.

    Raises:
        ValueError: If production deployment uses a weak or missing secret
    """
    return _validated_secret("JWT_SECRET_KEY", "dev-jwt-secret-change-me")


def get_jwt_refresh_secret_key() -> str:
    """Get the refresh-token secret with production validation."""
    return _validated_secret("JWT_REFRESH_SECRET_KEY", "dev-jwt-refresh-secret-change-me")


def create_access_token(
    data: Dict[str, Any], expires_delta: Optional[timedelta] = None
) -> str:
    """Create a signed access token carrying ``data`` plus type and expiry."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRES_MINUTES)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, get_jwt_secret_key(), algorithm=JWT_ALGORITHM)


def create_refresh_token(
    user_id: str, expires_delta: Optional[timedelta] = None
) -> Tuple[str, datetime]:
    """Create a refresh token for ``user_id``.

    Returns:
        Tuple of (encoded token, expiry datetime)
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(days=config.REFRESH_TOKEN_EXPIRES_DAYS)
    )
    payload = {
        "sub": str(user_id),
        "type": "refresh",
        "jti": uuid.uuid4().hex,
        "exp": expire,
    }
    token = jwt.encode(payload, get_jwt_refresh_secret_key(), algorithm=JWT_ALGORITHM)
    return token, expire


def verify_access_token(token: str) -> Dict[str, Any]:
    """Decode an access token or raise UnauthorizedError with the reason."""
    try:
        payload = jwt.decode(token, get_jwt_secret_key(), algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token expired")
    except jwt.PyJWTError:
        raise UnauthorizedError("Invalid token")
    if payload.get("type") != "access" or not payload.get("sub"):
        raise UnauthorizedError("Invalid token")
    return payload


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode and validate an access token.

    Returns:
        Decoded payload if valid, None if invalid or expired
    """
    try:
        return verify_access_token(token)
    except UnauthorizedError:
        return None


def decode_refresh_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode a refresh token; None when the signature, type or expiry is bad."""
    try:
        payload = jwt.decode(
            token, get_jwt_refresh_secret_key(), algorithms=[JWT_ALGORITHM]
        )
    except jwt.PyJWTError:
        return None
    if payload.get("type") != "refresh":
        return None
    return payload


def generate_token(nbytes: int = 32) -> str:
    """Random URL-safe hex token for email verification and password reset."""
    return secrets.token_hex(nbytes)


def hash_token(token: str) -> str:
    """SHA-256 hex digest; only digests of refresh/verification tokens are stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
