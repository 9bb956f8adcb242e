"""Role-based access decisions for routes and actions.

Every predicate is pure and takes the current session (or None). These are
client-side courtesy checks; the gateway re-enforces each rule.
"""

from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, List, Optional

from core.errors import AuthorizationError
from gateway.models import Order, Session

PURCHASER_ROLES = frozenset({"CUSTOMER", "ADMIN"})
LISTING_ROLES = frozenset({"SELLER", "ADMIN"})
ORDER_VIEW_ROLES = frozenset({"CUSTOMER", "ADMIN"})


def _role(session: Optional[Session]) -> Optional[str]:
    if session is None or session.user is None:
        return None
    return session.user.role


def can_create_product(session: Optional[Session]) -> bool:
    return _role(session) in LISTING_ROLES


def can_purchase(session: Optional[Session]) -> bool:
    # sellers may never buy, not even through a direct call
    return _role(session) in PURCHASER_ROLES


def can_view_orders(session: Optional[Session]) -> bool:
    return _role(session) in ORDER_VIEW_ROLES


def can_view_user_directory(session: Optional[Session]) -> bool:
    return _role(session) == "ADMIN"


def can_inspect_order(session: Optional[Session], order: Order) -> bool:
    role = _role(session)
    if role is None:
        return False
    return role == "ADMIN" or order.user_id == session.user.id


def can_cancel_order(session: Optional[Session], order: Order) -> bool:
    """Only CREATED orders, and only by their owner or an ADMIN."""
    if order.status != "CREATED":
        return False
    return can_inspect_order(session, order)


@dataclass(frozen=True)
class Route:
    name: str
    title: str
    roles: Optional[FrozenSet[str]] = None  # None: any authenticated session
    public: bool = False  # reachable before login


ROUTES: Dict[str, Route] = {
    "login": Route("login", "Sign in", public=True),
    "catalog": Route("catalog", "Catalog"),
    "orders": Route("orders", "Orders", roles=ORDER_VIEW_ROLES),
    "users": Route("users", "User Directory", roles=frozenset({"ADMIN"})),
}

DEFAULT_ROUTE = "catalog"
LOGIN_ROUTE = "login"


def can_access_route(session: Optional[Session], route: str) -> bool:
    entry = ROUTES.get(route)
    if entry is None:
        return False
    if entry.public:
        return True
    role = _role(session)
    if role is None:
        return False
    return entry.roles is None or role in entry.roles


def resolve_route(session: Optional[Session], route: str) -> str:
    """Return route if allowed, otherwise where the caller should redirect."""
    if can_access_route(session, route):
        return route
    return DEFAULT_ROUTE if _role(session) else LOGIN_ROUTE


def visible_routes(session: Optional[Session]) -> List[Route]:
    """Menu entries for a signed-in session, in declaration order."""
    return [
        r for r in ROUTES.values() if not r.public and can_access_route(session, r.name)
    ]


ACTIONS: Dict[str, Callable[[Optional[Session]], bool]] = {
    "create_product": can_create_product,
    "purchase": can_purchase,
    "view_orders": can_view_orders,
    "view_users": can_view_user_directory,
}

DENIAL_MESSAGES = {
    "create_product": "Only sellers and administrators can list products.",
    "purchase": "Sellers cannot purchase products.",
    "view_orders": "Your role has no order view.",
    "view_users": "Only administrators can view the user directory.",
    "inspect_order": "You can only view your own orders.",
}


def require(session: Optional[Session], action: str) -> None:
    """Raise AuthorizationError unless the session may perform action."""
    if _role(session) is None:
        raise AuthorizationError("Please sign in first.")
    if not ACTIONS[action](session):
        raise AuthorizationError(DENIAL_MESSAGES[action])


def require_cancel(session: Optional[Session], order: Order) -> None:
    if _role(session) is None:
        raise AuthorizationError("Please sign in first.")
    if not can_cancel_order(session, order):
        if order.status != "CREATED":
            raise AuthorizationError(
                f"Order is {order.status.lower()} and can no longer be cancelled."
            )
        raise AuthorizationError("You can only cancel your own orders.")


def require_inspect(session: Optional[Session], order: Order) -> None:
    if _role(session) is None:
        raise AuthorizationError("Please sign in first.")
    if not can_inspect_order(session, order):
        raise AuthorizationError(DENIAL_MESSAGES["inspect_order"])
