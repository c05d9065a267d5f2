"""
Authentication API Routes

Login and invite-code signup for panel users.
Rate limited to slow down brute force and signup spam.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
import logging

from slowapi import Limiter
from slowapi.util import get_remote_address

from db import get_db
from auth_service import AuthService, AuthenticationError
from schemas import ApiResponse, LoginRequest, SignupRequest
from services.panel_service import envelope

logger = logging.getLogger(__name__)

# Rate limiter for auth endpoints (uses app.state.limiter from app.py)
limiter = Limiter(key_func=get_remote_address)

router = APIRouter(prefix="/api/user", tags=["authentication"])


@router.post("/login", response_model=ApiResponse)
@limiter.limit("5/minute")
async def login(request: Request, login_request: LoginRequest, db: Session = Depends(get_db)):
    """
    Login endpoint

    Authenticates user with username and password, returns JWT access token.
    """
    auth_service = AuthService(db)

    try:
        user, token = auth_service.login(login_request.username, login_request.password)
    except AuthenticationError as e:
        logger.info(f"Login failed for {login_request.username}: {e}")
        return ApiResponse(**envelope(False, str(e)))

    return ApiResponse(**envelope(True, "Login successful!", {
        "token": token,
        "id": user.id,
        "username": user.username,
    }))


@router.post("/signup", response_model=ApiResponse)
@limiter.limit("3/hour")
async def signup(request: Request, signup_request: SignupRequest, db: Session = Depends(get_db)):
    """
    Signup endpoint

    Registers a new user with an invite code. Returns JWT access token.
    """
    auth_service = AuthService(db)

    try:
        user, token = auth_service.signup(
            invite_code=signup_request.invite_code,
            username=signup_request.username,
            password=signup_request.password
        )
    except AuthenticationError as e:
        logger.info(f"Signup failed for {signup_request.username}: {e}")
        return ApiResponse(**envelope(False, str(e)))

    logger.info(f"User {user.id} ({user.username}) signed up")
    return ApiResponse(**envelope(True, "Signup successful!", {
        "token": token,
        "id": user.id,
        "username": user.username,
    }))
