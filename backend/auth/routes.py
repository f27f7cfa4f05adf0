"""
Authentication API endpoints.

This module provides REST API endpoints for:
- User registration
- Login

Both routes are Public: the whole "auth" group is registered as such.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from auth.policies import Public, RouteId
from auth.security import PasswordHasher, TokenService, get_password_hasher, get_token_service
from database import get_db
from errors import Conflict, Unauthenticated
from models import Role, User
from repository import Repository
from schemas import AuthResponse, LoginRequest, RegisterRequest, UserResponse

logger = logging.getLogger(__name__)

GROUP = "auth"

router = APIRouter(prefix="/api/auth", tags=[GROUP])

ROUTE_POLICIES = [
    (RouteId(GROUP), Public()),
]


def issue_token(user: User, tokens: TokenService) -> AuthResponse:
    access_token = tokens.sign(user.id, email=user.email, role=Role(user.role).value)
    return AuthResponse(access_token=access_token, user=UserResponse.model_validate(user))


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    request: RegisterRequest,
    db: Session = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
    tokens: TokenService = Depends(get_token_service),
):
    """
    Register a new user account.

    New accounts are always MEMBERs; an admin promotes them afterwards.

    Raises:
        Conflict: 409 if email already registered
    """
    logger.info(f"Registration attempt for email: {request.email}")
    users = Repository(db, User)

    if users.find_one(email=request.email):
        logger.info(f"Registration failed: email already exists: {request.email}")
        raise Conflict("User with this email already exists")

    user = User(
        email=request.email,
        password_hash=hasher.hash(request.password),
        first_name=request.first_name,
        last_name=request.last_name,
        role=Role.MEMBER,
        is_active=True,
    )
    users.save(user)

    logger.info(f"User registered successfully: {user.email} (ID: {user.id})")
    return issue_token(user, tokens)


@router.post("/login", response_model=AuthResponse)
def login(
    request: LoginRequest,
    db: Session = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
    tokens: TokenService = Depends(get_token_service),
):
    """
    Login with email and password.

    Raises:
        Unauthenticated: 401 if credentials are invalid or the account is inactive
    """
    logger.info(f"Login attempt for email: {request.email}")

    user = Repository(db, User).find_one(email=request.email)
    if not user or not hasher.verify(request.password, user.password_hash):
        logger.info(f"Login failed: invalid credentials for {request.email}")
        raise Unauthenticated("Invalid email or password")

    if not user.is_active:
        logger.info(f"Login failed: inactive user: {request.email}")
        raise Unauthenticated("Account is deactivated")

    logger.info(f"User logged in successfully: {user.email} (ID: {user.id})")
    return issue_token(user, tokens)
