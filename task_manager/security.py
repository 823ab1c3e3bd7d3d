"""Password hashing and signed access tokens."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from . import config
from .errors import ConfigurationError, ExpiredToken, InvalidToken, MalformedToken

logger = logging.getLogger(__name__)

DEFAULT_SALT_ROUNDS = 12


def _salt_rounds() -> int:
    try:
        rounds = int(config.BCRYPT_SALT_ROUNDS)
    except (TypeError, ValueError):
        return DEFAULT_SALT_ROUNDS
    # bcrypt only accepts costs in 4..31
    if not 4 <= rounds <= 31:
        return DEFAULT_SALT_ROUNDS
    return rounds


def hash_password(password: str) -> str:
    """Hash a password using bcrypt directly."""
    password_bytes = password.encode("utf-8")[:72]  # Truncate to 72 bytes (bcrypt limit)
    salt = bcrypt.gensalt(rounds=_salt_rounds())
    return bcrypt.hashpw(password_bytes, salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    if not plain_password or not hashed_password:
        return False
    password_bytes = plain_password.encode("utf-8")[:72]
    hashed_bytes = hashed_password.encode("utf-8") if isinstance(hashed_password, str) else hashed_password
    try:
        return bcrypt.checkpw(password_bytes, hashed_bytes)
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


def _secret() -> str:
    if not config.JWT_SECRET:
        raise ConfigurationError("JWT secret is not configured on the server")
    return config.JWT_SECRET


def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token for ``subject`` (a user id)."""
    secret = _secret()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(seconds=config.JWT_EXPIRATION_SECONDS))
    to_encode = {"sub": str(subject), "iat": now, "exp": expire}
    return jwt.encode(to_encode, secret, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> str:
    """Verify ``token`` and return its subject.

    Raises MalformedToken, InvalidToken or ExpiredToken; ConfigurationError
    when no secret is configured.
    """
    secret = _secret()
    try:
        jwt.get_unverified_header(token)
    except JWTError as exc:
        raise MalformedToken(str(exc)) from exc

    try:
        payload = jwt.decode(token, secret, algorithms=[config.JWT_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise ExpiredToken(str(exc)) from exc
    except JWTError as exc:
        raise InvalidToken(str(exc)) from exc

    subject = payload.get("sub")
    if not subject or not isinstance(subject, str):
        raise MalformedToken("Token has no subject")
    return subject
