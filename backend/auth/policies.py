"""
Route policy registry.

Routes are protected by default: every route requires an authenticated
caller and accepts any role. A route (or a whole route group) can relax or
tighten that by registering policies:

- Public: the route needs no credential at all
- RequiredRoles: the caller's role must be one of a set of roles

Policies are registered once at startup from explicit tables declared next
to each router (``ROUTE_POLICIES``), then the registry is frozen and only
read at request time.

Lookup merges two levels. Group-level entries (``RouteId("users")``) apply
to every route of the group; method-level entries
(``RouteId("users", "list_users")``) override the group entry of the same
kind.

Example:
    >>> registry = PolicyRegistry()
    >>> registry.register(RouteId("auth"), Public())
    >>> registry.register(RouteId("users", "list_users"), RequiredRoles.of(Role.ADMIN))
    >>> registry.freeze()
    >>> registry.policies_for(RouteId("auth", "login")).is_public
    True
"""

import logging
from dataclasses import dataclass, field
from typing import ClassVar, Dict, FrozenSet, Iterable, Iterator, Optional, Tuple, Union

from models import Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteId:
    """Identity of a route: its group (router tag) and handler name."""

    group: Optional[str]
    handler: Optional[str] = None

    @property
    def is_group(self) -> bool:
        return self.handler is None

    def group_level(self) -> "RouteId":
        return RouteId(self.group)

    @classmethod
    def for_route(cls, route) -> "RouteId":
        """Build the identity of a matched FastAPI route."""
        tags = getattr(route, "tags", None) or []
        group = str(tags[0]) if tags else None
        return cls(group=group, handler=getattr(route, "name", None))

    def __str__(self) -> str:
        return f"{self.group}.{self.handler}" if self.handler else f"{self.group}.*"


@dataclass(frozen=True)
class Public:
    """Route may be called without authentication."""

    kind: ClassVar[str] = "public"
    value: bool = True


@dataclass(frozen=True)
class RequiredRoles:
    """Caller's role must be a member of ``roles``. An empty set means no restriction."""

    kind: ClassVar[str] = "required_roles"
    roles: FrozenSet[Role] = field(default_factory=frozenset)

    @classmethod
    def of(cls, *roles: Role) -> "RequiredRoles":
        return cls(frozenset(Role(r) for r in roles))


Policy = Union[Public, RequiredRoles]


@dataclass(frozen=True)
class RoutePolicies:
    """Effective policies of one route after merging group and method levels."""

    public: Optional[Public] = None
    required_roles: Optional[RequiredRoles] = None

    @property
    def is_public(self) -> bool:
        return self.public is not None and self.public.value

    def __iter__(self) -> Iterator[Policy]:
        for policy in (self.public, self.required_roles):
            if policy is not None:
                yield policy


class PolicyRegistry:
    """Table of route policies keyed by RouteId."""

    def __init__(self):
        self._table: Dict[RouteId, Dict[str, Policy]] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, route_id: RouteId, policy: Policy) -> None:
        """
        Attach a policy to a route or a route group.

        Raises:
            RuntimeError: if the registry has been frozen
            ValueError: if a different policy of the same kind is already
                registered at that level
        """
        if self._frozen:
            raise RuntimeError(f"Policy registry is frozen; cannot register {policy} on {route_id}")

        entries = self._table.setdefault(route_id, {})
        existing = entries.get(policy.kind)
        if existing is not None and existing != policy:
            raise ValueError(f"Conflicting {policy.kind} policies registered on {route_id}: {existing} vs {policy}")

        entries[policy.kind] = policy
        logger.debug(f"Registered {policy} on {route_id}")

    def register_all(self, declarations: Iterable[Tuple[RouteId, Policy]]) -> None:
        for route_id, policy in declarations:
            self.register(route_id, policy)

    def freeze(self) -> None:
        self._frozen = True
        logger.info(f"Policy registry frozen with {len(self._table)} entries")

    def policies_for(self, route_id: RouteId) -> RoutePolicies:
        """
        Effective policies of a route. Method-level entries win over
        group-level entries of the same kind. Unknown routes get no
        policies (authentication required, any role).
        """
        merged: Dict[str, Policy] = {}
        if route_id.group is not None:
            merged.update(self._table.get(route_id.group_level(), {}))
        if not route_id.is_group:
            merged.update(self._table.get(route_id, {}))

        return RoutePolicies(
            public=merged.get(Public.kind),
            required_roles=merged.get(RequiredRoles.kind),
        )
