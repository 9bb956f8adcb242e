from contextlib import asynccontextmanager
from typing import AsyncIterator, Set

from core.errors import OperationInProgressError
from utils.logger import get_logger

_logger = get_logger(__name__)


def product_create_key() -> str:
    return "product:create"


def order_create_key(product_id: str) -> str:
    return f"order:create:{product_id}"


def order_key(order_id: str) -> str:
    return f"order:{order_id}"


class InFlightRegistry:
    """
    Tracks which logical resources have a mutation outstanding.

    At most one mutation per key; unrelated keys never block each other.
    The check-and-add happens without an await in between, which keeps it
    atomic on a single event loop.
    """

    def __init__(self) -> None:
        self._keys: Set[str] = set()

    def busy(self, key: str) -> bool:
        return key in self._keys

    @property
    def any_busy(self) -> bool:
        return bool(self._keys)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        if key in self._keys:
            _logger.debug(f"Rejected concurrent mutation on {key}")
            raise OperationInProgressError(
                "That request is still being processed, please wait."
            )
        self._keys.add(key)
        try:
            yield
        finally:
            self._keys.discard(key)
