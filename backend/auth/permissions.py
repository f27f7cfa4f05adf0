"""
Ownership checks used inside handlers.

Route policies decide who may call a route at all. These functions decide,
per resource, whether a caller may act on something they do not
administratively own: a caller may act on a resource that is "theirs", or on
anything when they hold one of the override roles.

All functions here are pure. Callers raise the appropriate error.
"""

import logging
from typing import AbstractSet, Iterable, Optional

from auth.principal import Principal
from models import Role, Task

logger = logging.getLogger(__name__)

# Override sets used by handlers
ADMIN_ONLY = frozenset({Role.ADMIN})
STAFF = frozenset({Role.ADMIN, Role.MANAGER})

# User fields only an administrator may change, even on their own profile
RESTRICTED_USER_FIELDS = frozenset({"role", "is_active"})


def can_mutate(actor: Principal, target_owner_id: Optional[int], admin_override: AbstractSet[Role]) -> bool:
    """
    Check whether an actor may act on a resource.

    Args:
        actor: Caller
        target_owner_id: ID of the principal that owns (or is) the resource
        admin_override: Roles that may act on any resource

    Returns:
        True if the actor owns the resource or holds an override role

    Example:
        >>> can_mutate(Principal(1, Role.MEMBER, True), 1, ADMIN_ONLY)
        True
        >>> can_mutate(Principal(1, Role.MEMBER, True), 2, ADMIN_ONLY)
        False
    """
    if target_owner_id is not None and actor.id == target_owner_id:
        return True
    return actor.role in admin_override


def can_mutate_restricted_fields(
    actor: Principal,
    fields: Iterable[str],
    restricted_fields: AbstractSet[str],
    required_role: Role,
) -> bool:
    """
    Check whether an actor may change the given fields.

    Touching any restricted field requires ``required_role`` exactly,
    independent of whether the actor owns the resource.
    """
    touched = set(fields) & set(restricted_fields)
    if not touched:
        return True
    if actor.role == required_role:
        return True
    logger.info(f"User {actor.id} ({actor.role.value}) may not change restricted fields: {sorted(touched)}")
    return False


def can_view_task(actor: Principal, task: Task) -> bool:
    """Staff see every task; members see tasks they created or are assigned to."""
    return can_mutate_task(actor, task, STAFF)


def can_mutate_task(actor: Principal, task: Task, admin_override: AbstractSet[Role] = STAFF) -> bool:
    """A task belongs to both its creator and its assignee."""
    return any(
        can_mutate(actor, owner_id, admin_override)
        for owner_id in (task.creator_id, task.assignee_id)
    )
