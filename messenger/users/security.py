import hashlib
import logging
import secrets
from datetime import UTC, datetime, timedelta
from typing import Optional
from uuid import uuid4

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from ..core.config import get_settings
from .repository import UserRepository, get_user_repository
from .schemas import UserInDB

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


class Unauthenticated(Exception):
    """Raised when a bearer credential cannot be turned into a user identity."""


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plain password against a hashed password.

    Args:
        plain_password: The plain text password to verify
        hashed_password: The hashed password to compare against

    Returns:
        True if passwords match, False otherwise
    """
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Stored value is not a hash passlib recognises
        return False


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(
    user_id: str, expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a new JWT access token with user_id as the subject.

    Args:
        user_id: ID of the user to use as the subject
        expires_delta: Optional expiration time delta

    Returns:
        The encoded JWT
    """
    settings = get_settings()
    now = datetime.now(UTC)
    expires_at = now + (
        expires_delta
        or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )

    token_data = {
        "sub": str(user_id),
        "exp": int(expires_at.timestamp()),
        "iat": int(now.timestamp()),
        "jti": str(uuid4()),
    }
    return jwt.encode(
        token_data,
        settings.JWT_SECRET_KEY.get_secret_value(),
        algorithm=settings.JWT_ALGORITHM,
    )


def authenticate_token(token: Optional[str]) -> str:
    """
    Decode and verify a JWT, returning the user id it was issued for.

    Used by the REST dependencies and by the socket.io handshake.

    Raises:
        Unauthenticated: If the token is missing, malformed or expired
    """
    if not token:
        raise Unauthenticated("No token provided")

    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY.get_secret_value(),
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError as e:
        raise Unauthenticated(f"Invalid token: {e}") from e

    user_id = payload.get("sub")
    if not user_id:
        raise Unauthenticated("Token is missing its subject")
    return str(user_id)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    users: UserRepository = Depends(get_user_repository),
) -> UserInDB:
    """Get the current user from the JWT token in the request."""
    try:
        user_id = authenticate_token(token)
    except Unauthenticated as e:
        logger.warning(f"Rejected bearer token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await users.get(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def generate_reset_token() -> str:
    return secrets.token_hex(32)


def hash_reset_token(token: str) -> str:
    """Only the sha256 digest of a reset token is ever stored."""
    return hashlib.sha256(token.encode()).hexdigest()
