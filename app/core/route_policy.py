"""
Per-route access metadata.

Every route the API serves has one entry here. The identity middleware
consults this table before dispatch:

- ``public`` routes skip identity resolution entirely
- otherwise a valid access token is required, and when ``roles`` is set the
  caller's role must be listed
- ``clears_session`` routes get their session cookies cleared even when the
  request is rejected (logout must never leave a stale cookie behind)

Requests that match no entry are treated as protected.
"""

import re
from dataclasses import dataclass, field

from app.config import Role


@dataclass(frozen=True)
class RoutePolicy:
    public: bool = False
    roles: tuple[str, ...] = ()
    clears_session: bool = False


PUBLIC = RoutePolicy(public=True)
AUTHENTICATED = RoutePolicy()
ADMIN_ONLY = RoutePolicy(roles=(Role.ADMIN,))
PROTECTED_DEFAULT = AUTHENTICATED


@dataclass(frozen=True)
class RouteRule:
    """One (method, path template) entry, e.g. ``("GET", "/products/{product_id}")``."""

    method: str
    path: str
    policy: RoutePolicy
    pattern: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        regex = re.sub(r"\{[^/{}]+\}", r"[^/]+", self.path)
        object.__setattr__(self, "pattern", re.compile(f"^{regex}/?$"))

    def matches(self, method: str, path: str) -> bool:
        return self.method == method and self.pattern.match(path) is not None


# Static paths come before templated siblings; first match wins.
ROUTE_POLICIES: tuple[RouteRule, ...] = (
    # Service
    RouteRule("GET", "/", PUBLIC),
    RouteRule("GET", "/health", PUBLIC),
    RouteRule("GET", "/docs", PUBLIC),
    RouteRule("GET", "/docs/oauth2-redirect", PUBLIC),
    RouteRule("GET", "/redoc", PUBLIC),
    RouteRule("GET", "/openapi.json", PUBLIC),
    # Auth
    RouteRule("POST", "/auth/login", PUBLIC),
    RouteRule("POST", "/auth/refresh", PUBLIC),
    RouteRule("POST", "/auth/register", PUBLIC),
    RouteRule("POST", "/auth/logout", RoutePolicy(clears_session=True)),
    RouteRule("GET", "/auth/profile", AUTHENTICATED),
    # Users
    RouteRule("GET", "/user/verify-email/confirm", PUBLIC),
    RouteRule("POST", "/user/verify-email/request", AUTHENTICATED),
    RouteRule("POST", "/user/password-reset/request", PUBLIC),
    RouteRule("POST", "/user/password-reset/confirm", PUBLIC),
    RouteRule("PUT", "/user/change-password/{user_id}", AUTHENTICATED),
    RouteRule("GET", "/user", AUTHENTICATED),
    RouteRule("GET", "/user/{user_id}", AUTHENTICATED),
    RouteRule("PUT", "/user/{user_id}", AUTHENTICATED),
    RouteRule("DELETE", "/user/{user_id}", AUTHENTICATED),
    # Categories
    RouteRule("GET", "/category", PUBLIC),
    RouteRule("GET", "/category/details", PUBLIC),
    RouteRule("GET", "/category/details/{category_id}", PUBLIC),
    RouteRule("GET", "/category/{category_id}", AUTHENTICATED),
    RouteRule("POST", "/category", ADMIN_ONLY),
    RouteRule("PUT", "/category/{category_id}", ADMIN_ONLY),
    RouteRule("DELETE", "/category/{category_id}", ADMIN_ONLY),
    # Products
    RouteRule("GET", "/products", PUBLIC),
    RouteRule("GET", "/products/search", PUBLIC),
    RouteRule("GET", "/products/all", PUBLIC),
    RouteRule("GET", "/products/{product_id}", PUBLIC),
    RouteRule("POST", "/products", ADMIN_ONLY),
    RouteRule("PUT", "/products/{product_id}", ADMIN_ONLY),
    RouteRule("DELETE", "/products/{product_id}", ADMIN_ONLY),
    # Orders
    RouteRule("GET", "/orders", ADMIN_ONLY),
    RouteRule("GET", "/orders/{order_id}", AUTHENTICATED),
    RouteRule("POST", "/orders", AUTHENTICATED),
    RouteRule("PUT", "/orders/{order_id}", AUTHENTICATED),
    RouteRule("DELETE", "/orders/{order_id}", AUTHENTICATED),
    # Checkout
    RouteRule("POST", "/checkout/finalize", AUTHENTICATED),
    RouteRule("POST", "/checkout/webhook", PUBLIC),
)


def resolve_policy(method: str, path: str) -> RoutePolicy:
    """Return the policy for a request, defaulting to protected."""
    method = method.upper()
    # HEAD is answered by GET handlers
    lookup_method = "GET" if method == "HEAD" else method
    for rule in ROUTE_POLICIES:
        if rule.matches(lookup_method, path):
            return rule.policy
    return PROTECTED_DEFAULT
