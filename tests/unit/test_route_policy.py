"""Tests for the route access table."""

import pytest
from fastapi.routing import APIRoute
from starlette.routing import Route

from app.api.routes import ROUTERS
from app.config import Role
from app.core.route_policy import (
    ADMIN_ONLY,
    PROTECTED_DEFAULT,
    PUBLIC,
    ROUTE_POLICIES,
    resolve_policy,
)
from app.main import app


@pytest.mark.unit
class TestResolvePolicy:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/auth/login"),
            ("POST", "/auth/refresh"),
            ("GET", "/products"),
            ("GET", "/products/12"),
            ("GET", "/products/search"),
            ("GET", "/category/details/3"),
            ("GET", "/health"),
        ],
    )
    def test_public_routes(self, method, path):
        assert resolve_policy(method, path).public is True

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/products"),
            ("PUT", "/products/12"),
            ("DELETE", "/category/3"),
            ("GET", "/orders"),
        ],
    )
    def test_admin_routes(self, method, path):
        assert resolve_policy(method, path) == ADMIN_ONLY
        assert resolve_policy(method, path).roles == (Role.ADMIN,)

    def test_logout_clears_session(self):
        policy = resolve_policy("POST", "/auth/logout")

        assert policy.public is False
        assert policy.clears_session is True

    def test_templated_path_does_not_swallow_nested_segments(self):
        # "/user/{user_id}" must not match "/user/1/extra"
        assert resolve_policy("GET", "/user/1/extra") == PROTECTED_DEFAULT

    def test_unknown_route_is_protected(self):
        policy = resolve_policy("GET", "/internal/metrics")

        assert policy == PROTECTED_DEFAULT
        assert policy.public is False

    def test_unlisted_method_is_protected(self):
        assert resolve_policy("PATCH", "/products/1") == PROTECTED_DEFAULT

    def test_head_follows_get(self):
        assert resolve_policy("HEAD", "/products") == PUBLIC

    def test_trailing_slash(self):
        assert resolve_policy("GET", "/products/") == PUBLIC


@pytest.mark.unit
class TestPolicyTableCoversApp:
    def _app_routes(self) -> set[tuple[str, str]]:
        # Feature routers are read directly; the app's own list may hold
        # included routers rather than their flattened routes.
        declared = [route for feature_router in ROUTERS for route in feature_router.routes]
        declared += app.routes

        routes = set()
        for route in declared:
            if isinstance(route, (APIRoute, Route)):
                for method in route.methods or ():
                    if method == "HEAD":
                        continue
                    routes.add((method, route.path))
        return routes

    def test_enumerates_feature_and_service_routes(self):
        routes = self._app_routes()

        assert ("POST", "/auth/login") in routes
        assert ("GET", "/orders/{order_id}") in routes
        assert ("POST", "/checkout/webhook") in routes
        assert ("GET", "/health") in routes
        assert ("GET", "/openapi.json") in routes

    def test_every_route_has_an_entry(self):
        declared = {(rule.method, rule.path) for rule in ROUTE_POLICIES}

        missing = self._app_routes() - declared
        assert not missing, f"Routes without an access policy: {sorted(missing)}"

    def test_no_stale_entries(self):
        declared = {(rule.method, rule.path) for rule in ROUTE_POLICIES}

        stale = declared - self._app_routes()
        assert not stale, f"Policies for routes that do not exist: {sorted(stale)}"
