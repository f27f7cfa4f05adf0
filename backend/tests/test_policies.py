"""
Tests for the route policy registry.

Covers:
- Group-level and method-level registration and lookup
- Method-level entries overriding group-level entries of the same kind
- Conflicting registrations and registration after freeze
- The registry built by the application from every router's table
"""

import logging

import pytest

from auth.policies import PolicyRegistry, Public, RequiredRoles, RouteId
from main import app, build_policy_registry
from models import Role
from routers import users

logger = logging.getLogger(__name__)


# ============== Lookup ==============


def test_unknown_route_has_no_policies():
    registry = PolicyRegistry()
    registry.freeze()

    policies = registry.policies_for(RouteId("tasks", "list_tasks"))

    assert policies.is_public is False
    assert policies.required_roles is None
    assert list(policies) == []


def test_group_policy_applies_to_every_handler():
    registry = PolicyRegistry()
    registry.register(RouteId("auth"), Public())

    assert registry.policies_for(RouteId("auth", "login")).is_public
    assert registry.policies_for(RouteId("auth", "register")).is_public
    assert not registry.policies_for(RouteId("users", "get_profile")).is_public


def test_method_policy_overrides_group_policy_of_same_kind():
    registry = PolicyRegistry()
    registry.register(RouteId("users"), RequiredRoles.of(Role.ADMIN, Role.MANAGER))
    registry.register(RouteId("users", "list_users"), RequiredRoles.of(Role.ADMIN))

    overridden = registry.policies_for(RouteId("users", "list_users"))
    inherited = registry.policies_for(RouteId("users", "get_user"))

    assert overridden.required_roles.roles == frozenset({Role.ADMIN})
    assert inherited.required_roles.roles == frozenset({Role.ADMIN, Role.MANAGER})


def test_policies_of_different_kinds_merge():
    registry = PolicyRegistry()
    registry.register(RouteId("reports"), Public())
    registry.register(RouteId("reports", "export"), RequiredRoles.of(Role.MANAGER))

    policies = registry.policies_for(RouteId("reports", "export"))

    assert policies.is_public
    assert policies.required_roles == RequiredRoles.of(Role.MANAGER)


def test_public_false_disables_group_public():
    registry = PolicyRegistry()
    registry.register(RouteId("auth"), Public())
    registry.register(RouteId("auth", "logout"), Public(False))

    assert registry.policies_for(RouteId("auth", "login")).is_public
    assert not registry.policies_for(RouteId("auth", "logout")).is_public


# ============== Registration ==============


def test_registering_same_policy_twice_is_allowed():
    registry = PolicyRegistry()
    registry.register(RouteId("users", "list_users"), RequiredRoles.of(Role.ADMIN))
    registry.register(RouteId("users", "list_users"), RequiredRoles.of(Role.ADMIN))

    assert registry.policies_for(RouteId("users", "list_users")).required_roles == RequiredRoles.of(Role.ADMIN)


def test_conflicting_registration_raises():
    registry = PolicyRegistry()
    registry.register(RouteId("users", "list_users"), RequiredRoles.of(Role.ADMIN))

    with pytest.raises(ValueError):
        registry.register(RouteId("users", "list_users"), RequiredRoles.of(Role.MANAGER))


def test_register_after_freeze_raises():
    registry = PolicyRegistry()
    registry.freeze()

    assert registry.frozen
    with pytest.raises(RuntimeError):
        registry.register(RouteId("auth"), Public())


def test_route_id_from_route_uses_first_tag_and_handler_name():
    route = next(r for r in users.router.routes if r.name == "list_users")

    assert RouteId.for_route(route) == RouteId("users", "list_users")
    assert str(RouteId("users", "list_users")) == "users.list_users"
    assert str(RouteId("users")) == "users.*"


# ============== Application registry ==============


def test_application_registry_is_frozen():
    assert app.state.policy_registry.frozen


def test_application_registry_declarations():
    registry = build_policy_registry()

    assert registry.policies_for(RouteId("auth", "login")).is_public
    assert registry.policies_for(RouteId("auth", "register")).is_public
    assert registry.policies_for(RouteId("health", "health_check")).is_public
    assert registry.policies_for(RouteId("users", "list_users")).required_roles == RequiredRoles.of(Role.ADMIN)
    assert registry.policies_for(RouteId("users", "delete_user")).required_roles == RequiredRoles.of(Role.ADMIN)
    assert registry.policies_for(RouteId("tasks", "assign_task")).required_roles == RequiredRoles.of(
        Role.ADMIN, Role.MANAGER
    )

    profile = registry.policies_for(RouteId("users", "get_profile"))
    assert not profile.is_public
    assert profile.required_roles is None
    logger.info("✓ Application policy table matches declared route policies")
