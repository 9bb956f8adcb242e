"""Storefront controller: one entry point per user action.

Every protected action runs the same sequence: expiry check, guard
predicate, local validation, per-resource in-flight gate, gateway call,
then a refetch of whatever the mutation could have changed.
"""

from __future__ import annotations

import math
import time
from typing import Any, Awaitable, Callable, FrozenSet, List, Optional, Tuple

from core import guard
from core.errors import SessionExpiredError, StorefrontError, ValidationError
from core.inflight import (
    InFlightRegistry,
    order_create_key,
    order_key,
    product_create_key,
)
from core.orders import OrderSubmission, new_idempotency_key
from core.session import Notifier, SessionStore
from core.sync import SyncOrchestrator
from gateway.models import (
    SELF_REGISTER_ROLES,
    Order,
    OrderReceipt,
    Product,
    SagaStep,
    Session,
    User,
)
from utils.logger import get_logger
from utils.state import StoreState

_logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 6


def _log_notifier(severity: str, message: str) -> None:
    _logger.info(f"({severity}) {message}")


def validate_registration(
    name: str, email: str, password: str, role: str
) -> Tuple[str, str, str, str]:
    name = (name or "").strip()
    email = (email or "").strip()
    role = (role or "CUSTOMER").strip().upper()
    if not name:
        raise ValidationError("Name is required.")
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        raise ValidationError("Enter a valid email address.")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
        )
    if role not in SELF_REGISTER_ROLES:
        raise ValidationError("Accounts can only register as customer or seller.")
    return name, email, password, role


def validate_listing(name: str, price, stock) -> Tuple[str, float, int]:
    """Coerce product form input; raises ValidationError on bad values."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Product name is required.")
    try:
        price_val = round(float(price), 2)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValidationError("Price must be a number.") from exc
    if not math.isfinite(price_val):
        raise ValidationError("Price must be a number.")
    try:
        stock_val = int(stock)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValidationError("Stock must be a whole number.") from exc
    if isinstance(stock, float) and stock != stock_val:
        raise ValidationError("Stock must be a whole number.")
    if price_val < 0:
        raise ValidationError("Price cannot be negative.")
    if stock_val < 0:
        raise ValidationError("Stock cannot be negative.")
    return name, price_val, stock_val


class Storefront:
    def __init__(
        self,
        gateway,
        records,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], float] = time.time,
        on_refreshed: Optional[Callable[[FrozenSet[str]], None]] = None,
        key_factory: Callable[[], str] = new_idempotency_key,
    ) -> None:
        self.state = StoreState()
        self._gateway = gateway
        self._notify = notifier or _log_notifier
        self.session = SessionStore(gateway, records, self.state, self._notify, clock)
        self.sync = SyncOrchestrator(gateway, self.state, self._notify, on_refreshed)
        self.orders = OrderSubmission(gateway, key_factory)
        self.inflight = InFlightRegistry()
        self.session.subscribe(self.sync.on_session_changed)

    # ---------------------------
    # Lifecycle & session
    # ---------------------------

    async def start(self) -> Optional[Session]:
        """Restore any saved session and load the public catalog."""
        session = await self.session.restore()
        await self.sync.load_products()
        return session

    async def register(
        self, name: str, email: str, password: str, role: str = "CUSTOMER"
    ) -> User:
        name, email, password, role = validate_registration(name, email, password, role)
        user = await self._gateway.register_user(name, email, password, role)
        _logger.info(f"Registered user {user.id} as {user.role}")
        self._notify("information", "Registration successful. Please sign in.")
        return user

    async def login(self, email: str, password: str) -> Session:
        session = await self.session.login(email, password)
        self._notify("information", f"Welcome back, {session.user.name or session.user.email}!")
        return session

    async def logout(self, reason: Optional[str] = None) -> None:
        await self.session.logout(reason or "Signed out.")

    async def tick(self) -> bool:
        """Periodic expiry check; True when it forced a logout."""
        return await self.session.check_expiry()

    # ---------------------------
    # Reads
    # ---------------------------

    async def refresh_products(self) -> bool:
        return await self.sync.load_products()

    async def refresh_orders(self) -> bool:
        session = await self.session.ensure_active()
        guard.require(session, "view_orders")
        return await self.sync.load_orders()

    async def refresh_users(self) -> bool:
        session = await self.session.ensure_active()
        guard.require(session, "view_users")
        return await self.sync.load_users()

    async def order_saga(self, order_id: str) -> List[SagaStep]:
        session = await self.session.ensure_active()
        order = self._known_order(order_id)
        guard.require_inspect(session, order)
        return await self._gateway.order_saga(session.authorization, order_id)

    # ---------------------------
    # Mutations
    # ---------------------------

    async def create_product(self, name: str, price, stock) -> Product:
        session = await self.session.ensure_active()
        guard.require(session, "create_product")
        name, price, stock = validate_listing(name, price, stock)

        async with self.inflight.hold(product_create_key()):
            product = await self._gateway.create_product(
                session.authorization, name, price, stock
            )
            _logger.info(f"Listed product {product.id} ({product.name})")
            self._notify("information", f"{product.name} is now listed.")
            await self.sync.after_mutation("create_product")
        return product

    async def place_order(
        self, product_id: str, quantity, idempotency_key: Optional[str] = None
    ) -> OrderReceipt:
        session = await self.session.ensure_active()
        guard.require(session, "purchase")

        async with self.inflight.hold(order_create_key(product_id)):
            receipt = await self.orders.place_order(
                session, product_id, quantity, idempotency_key
            )
            if receipt.replay:
                self._notify(
                    "information",
                    "Duplicate request recognised; no new order was created.",
                )
            else:
                self._notify("information", "Order placed.")
            await self.sync.after_mutation("create_order")
        return receipt

    async def cancel_order(self, order_id: str) -> Order:
        session = await self.session.ensure_active()
        order = self._known_order(order_id)
        guard.require_cancel(session, order)

        async with self.inflight.hold(order_key(order_id)):
            cancelled = await self.orders.cancel_order(session, order)
            self.state.replace(
                "orders",
                (cancelled if o.id == order_id else o for o in self.state.orders),
            )
            self._notify("information", "Order cancelled.")
            await self.sync.after_mutation("cancel_order")
        return cancelled

    # ---------------------------
    # Helpers for the views
    # ---------------------------

    async def attempt(self, action: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Run an action, turning any StorefrontError into an error toast."""
        try:
            return await action(*args, **kwargs)
        except StorefrontError as exc:
            _logger.debug(f"{action.__name__} failed: {exc!r}")
            self.report_error(exc)
            return None

    def report_error(self, exc: StorefrontError) -> None:
        """Show an error toast; a forced logout has already shown its own reason."""
        if isinstance(exc, SessionExpiredError):
            return
        self._notify("error", exc.message)

    def can(self, action: str) -> bool:
        return guard.ACTIONS[action](self.state.session)

    def can_cancel(self, order: Order) -> bool:
        return guard.can_cancel_order(self.state.session, order)

    def can_access(self, route: str) -> bool:
        return guard.can_access_route(self.state.session, route)

    def _known_order(self, order_id: str) -> Order:
        order = self.state.find_order(order_id)
        if order is None:
            raise ValidationError("Unknown order; refresh the order list and retry.")
        return order
