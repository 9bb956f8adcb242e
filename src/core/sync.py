"""Keeps the cached collections in step with the gateway.

Collections are always reloaded in full after a change (refetch over patch),
so what is displayed never drifts from server state.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Dict, FrozenSet, Optional

from core import guard
from core.errors import RemoteError
from gateway.models import Session
from utils.logger import get_logger
from utils.state import StoreState

_logger = get_logger(__name__)

Notifier = Callable[[str, str], None]

MUTATION_REFRESH: Dict[str, FrozenSet[str]] = {
    "create_product": frozenset({"products"}),
    "create_order": frozenset({"products", "orders"}),
    "cancel_order": frozenset({"products", "orders"}),
}


def plan_session_loads(session: Optional[Session]) -> FrozenSet[str]:
    """Collections to load when the session becomes `session`."""
    if session is None:
        return frozenset()
    plan = set()
    if guard.can_view_user_directory(session):
        plan.add("users")
    if guard.can_view_orders(session):
        plan.add("orders")
    return frozenset(plan)


def plan_session_clears(session: Optional[Session]) -> FrozenSet[str]:
    """Session-scoped collections that must be emptied right away."""
    if session is None:
        return frozenset({"users", "orders"})
    return frozenset({"users", "orders"}) - plan_session_loads(session)


class SyncOrchestrator:
    def __init__(
        self,
        gateway,
        state: StoreState,
        notifier: Optional[Notifier] = None,
        on_refreshed: Optional[Callable[[FrozenSet[str]], None]] = None,
    ) -> None:
        self._gateway = gateway
        self._state = state
        self._notify = notifier
        self._on_refreshed = on_refreshed

    async def on_session_changed(self, session: Optional[Session]) -> None:
        # clearing happens before the first await
        clears = plan_session_clears(session)
        if clears:
            self._state.clear(*clears)
            self._announce(clears)
        await self.refresh(plan_session_loads(session))

    async def after_mutation(self, mutation: str) -> None:
        await self.refresh(MUTATION_REFRESH[mutation])

    async def refresh(self, collections) -> None:
        """Reload the named collections concurrently; order of completion is free."""
        loaders = {
            "products": self.load_products,
            "users": self.load_users,
            "orders": self.load_orders,
        }
        await asyncio.gather(*(loaders[name]() for name in sorted(collections)))

    async def load_products(self) -> bool:
        try:
            products = await self._gateway.list_products()
        except RemoteError as exc:
            self._report("products", exc)
            return False
        self._state.replace("products", products)
        self._announce(frozenset({"products"}))
        return True

    async def load_users(self) -> bool:
        session = self._state.session
        if not guard.can_view_user_directory(session):
            return False
        return await self._load_scoped("users", session, self._gateway.list_users)

    async def load_orders(self) -> bool:
        session = self._state.session
        if not guard.can_view_orders(session):
            self._state.clear("orders")
            return False
        return await self._load_scoped("orders", session, self._gateway.list_orders)

    async def _load_scoped(self, name: str, session: Session, fetch) -> bool:
        try:
            items = await fetch(session.authorization)
        except RemoteError as exc:
            self._report(name, exc)
            return False
        if self._state.session is not session:
            # the session changed while the fetch was in flight
            _logger.debug(f"Dropping stale {name} response")
            return False
        self._state.replace(name, items)
        self._announce(frozenset({name}))
        return True

    def _report(self, name: str, exc: RemoteError) -> None:
        _logger.warning(f"Loading {name} failed: {exc}")
        if self._notify:
            self._notify("error", exc.message)

    def _announce(self, names: FrozenSet[str]) -> None:
        if self._on_refreshed:
            self._on_refreshed(names)
