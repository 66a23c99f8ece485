"""Authentication routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status

from vaultsync.storage import UsernameTaken
from vaultsync.types import utc_now

from ..auth import create_access_token, generate_user_id, hash_password, verify_password
from ..config import Settings, get_settings
from ..database import Store, create_user, get_user_by_username, update_device_id
from ..logging_config import get_logger, log_auth_event
from ..models import AuthRequest, AuthResponse
from ..rate_limit import limiter

logger = get_logger("vaultsync.auth")
router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def register(
    request: Request,
    auth_request: AuthRequest,
    store: Store,
    settings: Annotated[Settings, Depends(get_settings)],
):
    """
    Register a new user from a device.

    The returned user_id is the owner of every record the user syncs.
    """
    logger.info(f"Registration attempt for user: {auth_request.username}")

    user_id = generate_user_id()
    try:
        create_user(
            store,
            user_id=user_id,
            username=auth_request.username,
            password_hash=hash_password(auth_request.password),
            device_id=auth_request.device_id,
            created_at=utc_now(),
        )
    except UsernameTaken:
        log_auth_event("register", auth_request.username, False, "username taken")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username already exists",
        )

    token, expires_at = create_access_token(user_id, auth_request.username, settings)
    log_auth_event("register", auth_request.username, True)

    return AuthResponse(token=token, expires_at=int(expires_at.timestamp()), user_id=user_id)


@router.post("/login", response_model=AuthResponse)
@limiter.limit("10/minute")
def login(
    request: Request,
    auth_request: AuthRequest,
    store: Store,
    settings: Annotated[Settings, Depends(get_settings)],
):
    """
    Get an access token for an existing user and remember the device.
    """
    user = get_user_by_username(store, auth_request.username)
    if not user or not verify_password(auth_request.password, user["password_hash"]):
        log_auth_event("login", auth_request.username, False, "invalid credentials")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    update_device_id(store, user["id"], auth_request.device_id)

    token, expires_at = create_access_token(user["id"], user["username"], settings)
    log_auth_event("login", auth_request.username, True)

    return AuthResponse(token=token, expires_at=int(expires_at.timestamp()), user_id=user["id"])
