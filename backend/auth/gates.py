"""
Request gates: authentication, then authorization.

Both gates run for every route, in this order, before any handler code:

1. authenticate() resolves the calling user from the bearer credential,
   unless the route is Public.
2. authorize() checks the resolved principal against the route's
   RequiredRoles policy.

authorize() relies on authenticate() having already run: it must never be
called on its own for a non-public route.
"""

import logging
from typing import Optional

from auth.policies import RequiredRoles
from auth.principal import Principal
from auth.security import TokenService
from errors import Forbidden, Unauthenticated
from models import User
from repository import Repository

logger = logging.getLogger(__name__)


def authenticate(
    credential: Optional[str],
    public: bool,
    tokens: TokenService,
    users: Repository,
) -> Optional[User]:
    """
    Resolve the calling user.

    Args:
        credential: Raw bearer token, if one was presented
        public: Whether the matched route is Public
        tokens: Token verification port
        users: Repository of User rows

    Returns:
        The active User the token belongs to, or None for public routes

    Raises:
        Unauthenticated: no credential, unknown user or inactive user
        InvalidToken / ExpiredToken: the credential failed verification
    """
    if public:
        logger.debug("Public route, skipping authentication")
        return None

    if not credential:
        logger.info("No authentication credentials provided")
        raise Unauthenticated("Not authenticated")

    payload = tokens.verify(credential)

    user = users.get(payload.subject_id)
    if user is None:
        logger.info(f"User not found for id: {payload.subject_id}")
        raise Unauthenticated("User not found")

    if not user.is_active:
        logger.info(f"Inactive user attempted access: {user.id}")
        raise Unauthenticated("Account is inactive")

    logger.debug(f"User authenticated via JWT: {user.id}")
    return user


def authorize(principal: Optional[Principal], required_roles: Optional[RequiredRoles]) -> None:
    """
    Check the principal against the route's required roles.

    No RequiredRoles policy, or one with an empty role set, places no
    restriction. Otherwise the principal must be present, active, and hold
    one of the listed roles. Roles do not inherit from each other.

    Raises:
        Forbidden: if the role requirement is not met
    """
    if required_roles is None:
        return
    if len(required_roles.roles) == 0:
        return

    if principal is None:
        logger.info("Role-restricted route reached without a principal")
        raise Forbidden("Authentication required for this resource")

    if not principal.active:
        logger.info(f"Inactive principal {principal.id} denied")
        raise Forbidden("Account is inactive")

    if principal.role not in required_roles.roles:
        required = ", ".join(sorted(r.value for r in required_roles.roles))
        logger.info(f"Access denied: user {principal.id} has role '{principal.role.value}', but one of [{required}] is required")
        raise Forbidden(f"Access denied. Required role: {required}")

    logger.debug(f"Role check passed for user {principal.id}")
