"""
FastAPI dependencies for authentication and authorization.

enforce_route_policies is installed as an application-wide dependency, so
every API route runs the same gate pipeline regardless of how many policies
it declares. Handlers that need the caller depend on get_current_user or
get_current_principal, which reuse the pipeline's cached result.
"""

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from auth.gates import authenticate, authorize
from auth.policies import PolicyRegistry, RouteId
from auth.principal import Principal
from auth.security import TokenService, get_token_service
from database import get_db
from errors import Unauthenticated
from models import User
from repository import Repository

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme; missing or non-bearer headers yield None
security = HTTPBearer(auto_error=False)


def get_policy_registry(request: Request) -> PolicyRegistry:
    return request.app.state.policy_registry


def run_route_gates(
    request: Request,
    credential: Optional[str],
    db: Session,
    tokens: TokenService,
    registry: PolicyRegistry,
) -> Optional[User]:
    """
    Run AuthenticationGate then AuthorizationGate for the matched route.

    Returns:
        The authenticated User, or None on public routes

    Raises:
        Unauthenticated: 401 if the route needs a caller and none was resolved
        Forbidden: 403 if the route's role requirement is not met
    """
    route_id = RouteId.for_route(request.scope.get("route"))
    policies = registry.policies_for(route_id)
    logger.debug(f"Gate pipeline for {request.method} {request.url.path} ({route_id}): {list(policies)}")

    user = authenticate(credential, policies.is_public, tokens, Repository(db, User))

    principal = Principal.from_user(user) if user is not None else None
    authorize(principal, policies.required_roles)

    request.state.principal = principal
    return user


def enforce_route_policies(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
    registry: PolicyRegistry = Depends(get_policy_registry),
) -> Optional[User]:
    """App-wide dependency running the gates before every handler."""
    credential = credentials.credentials if credentials else None
    return run_route_gates(request, credential, db, tokens, registry)


async def recheck_route_policies(request: Request) -> None:
    """
    Run the gates for a request rejected before its dependencies resolved.

    FastAPI decodes the JSON body before it solves dependencies, so a
    malformed body fails validation without the gates having run. The
    validation error handler calls this first so that a missing credential
    or role still answers 401/403 rather than 400.

    Dependency overrides (test sessions) are honoured.

    Raises:
        Unauthenticated / Forbidden: as enforce_route_policies
    """
    if request.scope.get("route") is None:
        return

    overrides = request.app.dependency_overrides
    credentials = await security(request)
    tokens = overrides.get(get_token_service, get_token_service)()
    sessions = overrides.get(get_db, get_db)()
    db = next(sessions)
    try:
        credential = credentials.credentials if credentials else None
        run_route_gates(request, credential, db, tokens, get_policy_registry(request))
    finally:
        sessions.close()


def get_current_user(user: Optional[User] = Depends(enforce_route_policies)) -> User:
    """
    The authenticated caller.

    Example:
        @router.get("/api/users/me")
        def me(current_user: User = Depends(get_current_user)):
            return current_user
    """
    if user is None:
        # Only reachable if a Public route asks for a caller
        raise Unauthenticated("Not authenticated")
    return user


def get_current_principal(user: User = Depends(get_current_user)) -> Principal:
    """The authenticated caller reduced to id, role and active flag."""
    return Principal.from_user(user)
