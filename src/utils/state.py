from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple

from gateway.models import Order, Product, Session, User

COLLECTIONS = ("users", "products", "orders")


@dataclass
class StoreState:
    """
    The one context object holding the session and the cached collections.

    Fields:
      - session: the authenticated session, or None when logged out
      - users: user directory (ADMIN only)
      - products: public catalog
      - orders: orders visible to the current session

    Every write replaces a whole value; collections are tuples so a
    reader never sees one half-updated.
    """

    session: Optional[Session] = None
    users: Tuple[User, ...] = field(default_factory=tuple)
    products: Tuple[Product, ...] = field(default_factory=tuple)
    orders: Tuple[Order, ...] = field(default_factory=tuple)

    @property
    def user(self) -> Optional[User]:
        return self.session.user if self.session else None

    def replace_session(self, session: Optional[Session]) -> None:
        self.session = session

    def replace(self, collection: str, items: Iterable) -> None:
        if collection not in COLLECTIONS:
            raise KeyError(collection)
        setattr(self, collection, tuple(items))

    def clear(self, *collections: str) -> None:
        for name in collections:
            self.replace(name, ())

    def find_order(self, order_id: str) -> Optional[Order]:
        return next((o for o in self.orders if o.id == order_id), None)

    def find_product(self, product_id: str) -> Optional[Product]:
        return next((p for p in self.products if p.id == product_id), None)
