"""
User management endpoints.

Routes:
- GET    /api/users/me    current user's profile (any role)
- GET    /api/users       list users (ADMIN)
- GET    /api/users/{id}  self, or ADMIN/MANAGER
- PATCH  /api/users/{id}  self or ADMIN; role/is_active are ADMIN-only
- DELETE /api/users/{id}  ADMIN, never self
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from auth.dependencies import get_current_principal, get_current_user
from auth.permissions import ADMIN_ONLY, RESTRICTED_USER_FIELDS, STAFF, can_mutate, can_mutate_restricted_fields
from auth.policies import RequiredRoles, RouteId
from auth.principal import Principal
from auth.security import PasswordHasher, get_password_hasher
from database import get_db
from errors import Conflict, Forbidden
from models import Role, User
from repository import Repository
from schemas import UserResponse, UserUpdate

logger = logging.getLogger(__name__)

GROUP = "users"

router = APIRouter(prefix="/api/users", tags=[GROUP])

ROUTE_POLICIES = [
    (RouteId(GROUP, "list_users"), RequiredRoles.of(Role.ADMIN)),
    (RouteId(GROUP, "delete_user"), RequiredRoles.of(Role.ADMIN)),
]


@router.get("/me", response_model=UserResponse)
def get_profile(current_user: User = Depends(get_current_user)):
    """Get the authenticated user's profile."""
    logger.debug(f"Fetching profile for user {current_user.id}")
    return current_user


@router.get("", response_model=List[UserResponse])
def list_users(
    role: Optional[Role] = Query(None),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, min_length=1, max_length=255),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List users with optional role/status filters and a name/email search (admin only)."""
    logger.debug(f"Admin {current_user.id} listing users (role={role}, is_active={is_active}, search={search})")

    criteria = []
    if role is not None:
        criteria.append(User.role == role)
    if is_active is not None:
        criteria.append(User.is_active == is_active)
    if search:
        pattern = f"%{search.lower()}%"
        criteria.append(
            or_(
                func.lower(User.first_name).like(pattern),
                func.lower(User.last_name).like(pattern),
                func.lower(User.email).like(pattern),
            )
        )

    return Repository(db, User).find(*criteria, order_by=User.id)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Get user by ID (self, or admin/manager)."""
    logger.debug(f"User {principal.id} requesting user {user_id}")

    if not can_mutate(principal, user_id, STAFF):
        logger.info(f"User {principal.id} denied access to profile {user_id}")
        raise Forbidden("Access denied. You can only view your own profile.")

    return Repository(db, User).get_or_404(user_id)


@router.patch("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    user_update: UserUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
):
    """
    Update a user.

    Users may update their own profile (name, email, password, avatar).
    Admins may update anyone, and only admins may change role or is_active.

    Raises:
        Forbidden: 403 if not self/admin, or restricted fields without admin role
        NotFound: 404 if the user does not exist
        Conflict: 409 if the new email is taken
    """
    logger.debug(f"User {principal.id} updating user {user_id}")
    update_data = user_update.model_dump(exclude_unset=True)

    if not can_mutate(principal, user_id, ADMIN_ONLY):
        logger.info(f"User {principal.id} denied update of user {user_id}")
        raise Forbidden("You can only update your own profile")

    if not can_mutate_restricted_fields(principal, update_data.keys(), RESTRICTED_USER_FIELDS, Role.ADMIN):
        raise Forbidden("Only admins can change roles or account status")

    users = Repository(db, User)
    user = users.get_or_404(user_id)

    # Non-nullable columns: an explicit null is a no-op rather than a 500
    for key in ("email", "password", "first_name", "last_name", "role", "is_active"):
        if key in update_data and update_data[key] is None:
            update_data.pop(key)

    if "email" in update_data and update_data["email"] != user.email:
        if users.find_one(User.email == update_data["email"], User.id != user_id):
            logger.info(f"Email {update_data['email']} already in use")
            raise Conflict("Email already exists")

    if "password" in update_data:
        user.password_hash = hasher.hash(update_data.pop("password"))

    for key, value in update_data.items():
        setattr(user, key, value)

    users.save(user)
    logger.info(f"User updated: {user.email} (ID: {user.id}), fields: {sorted(user_update.model_fields_set)}")
    return user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Delete a user (admin only).

    Cascades: the user's created tasks, comments and notifications are
    deleted; tasks assigned to the user become unassigned.
    """
    logger.debug(f"Admin {current_user.id} deleting user {user_id}")

    # Prevent self-deletion (admin locking themselves out)
    if user_id == current_user.id:
        logger.warning(f"Admin {current_user.id} attempted to delete their own account")
        raise Forbidden("You cannot delete your own account")

    users = Repository(db, User)
    user = users.get_or_404(user_id)
    users.remove(user)

    logger.info(f"User deleted: {user_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
