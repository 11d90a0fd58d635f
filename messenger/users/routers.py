# fastAPI API Routers
import logging
from datetime import UTC, datetime, timedelta
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool

from ..core.config import get_settings
from ..core.limiter import limiter
from ..shared.db.exceptions import DuplicateRecord
from . import security, utils
from .repository import UserRepository, get_user_repository
from .schemas import (
    AuthResponse,
    MessageResponse,
    PasswordResetConfirm,
    PasswordResetRequest,
    UserCreate,
    UserInDB,
    UserLogin,
    UserSchema,
    UserUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])
settings = get_settings()

RESET_REQUESTED_MESSAGE = "If that email exists, a password reset link has been sent."
MIN_PASSWORD_LENGTH = 6


def _auth_response(user: UserInDB) -> AuthResponse:
    return AuthResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        unique_id=user.unique_id,
        avatar=user.avatar,
        token=security.create_access_token(user.id),
    )


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register_user(
    user: UserCreate,
    users: UserRepository = Depends(get_user_repository),
):
    logger.info(f"Register attempt: {user.username} <{user.email}>")

    if await users.exists(user.email, user.unique_id):
        raise HTTPException(status_code=400, detail="User already exists")

    try:
        db_user = await users.create(
            username=user.username,
            email=user.email,
            hashed_password=security.get_password_hash(user.password),
            unique_id=user.unique_id,
        )
    except DuplicateRecord:
        # Lost a race with a concurrent registration
        raise HTTPException(status_code=400, detail="User already exists")
    logger.info(f"User registered: {db_user.id}")
    return _auth_response(db_user)


@router.post("/login", response_model=AuthResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login_user(
    request: Request,
    credentials: UserLogin,
    users: UserRepository = Depends(get_user_repository),
):
    logger.info(f"Login attempt: {credentials.email}")

    user = await users.get_by_email(credentials.email)
    if not user or not security.verify_password(
        credentials.password, user.password
    ):
        logger.info(f"Invalid credentials for: {credentials.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info(f"User logged in: {user.id}")
    return _auth_response(user)


@router.get("/me", response_model=UserSchema)
async def read_users_me(
    current_user: UserInDB = Depends(security.get_current_user),
):
    return current_user


@router.put("/update", response_model=UserSchema)
async def update_profile(
    update: UserUpdate,
    current_user: UserInDB = Depends(security.get_current_user),
    users: UserRepository = Depends(get_user_repository),
):
    logger.info(f"Update profile: {current_user.id}")
    user = await users.update_profile(
        current_user.id, username=update.username, avatar=update.avatar
    )
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/all", response_model=List[UserSchema])
async def get_all_users(
    current_user: UserInDB = Depends(security.get_current_user),
    users: UserRepository = Depends(get_user_repository),
):
    """Get all users except the current one."""
    found = await users.list_except(current_user.id)
    logger.info(f"Found {len(found)} users besides {current_user.id}")
    return found


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    data: PasswordResetRequest,
    users: UserRepository = Depends(get_user_repository),
):
    user = await users.get_by_email(data.email)
    # Same answer whether or not the address is registered
    if user is None:
        return {"message": RESET_REQUESTED_MESSAGE}

    token = security.generate_reset_token()
    expires_at = datetime.now(UTC) + timedelta(
        minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES
    )
    await users.set_reset_token(
        user.id, security.hash_reset_token(token), expires_at
    )

    reset_url = f"{settings.FRONTEND_URL}/reset-password/{token}"
    sent = await run_in_threadpool(
        utils.send_reset_email,
        user.email,
        user.username,
        reset_url,
        settings.PASSWORD_RESET_EXPIRE_MINUTES,
    )
    if not sent:
        raise HTTPException(
            status_code=500,
            detail="Failed to send reset email. Please try again later.",
        )
    return {"message": "Password reset link has been sent to your email."}


@router.post("/reset-password/{token}", response_model=MessageResponse)
async def reset_password(
    token: str,
    data: PasswordResetConfirm,
    users: UserRepository = Depends(get_user_repository),
):
    if len(data.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=(
                f"Password must be at least {MIN_PASSWORD_LENGTH} "
                "characters long"
            ),
        )

    user = await users.get_by_reset_token(
        security.hash_reset_token(token), datetime.now(UTC)
    )
    if user is None:
        raise HTTPException(
            status_code=400, detail="Invalid or expired reset token"
        )

    await users.reset_password(
        user.id, security.get_password_hash(data.password)
    )
    logger.info(f"Password reset for user {user.id}")
    return {
        "message": "Password has been reset successfully. You can now login."
    }


__all__ = ["router"]
