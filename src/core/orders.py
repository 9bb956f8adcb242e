"""Idempotent order creation and the client side of the cancel transition."""

from __future__ import annotations

import dataclasses
import secrets
import time
from typing import Callable, Optional

from core import guard
from core.errors import ValidationError
from gateway.models import Order, OrderReceipt, Session
from utils.logger import get_logger

_logger = get_logger(__name__)


def new_idempotency_key() -> str:
    """A fresh key per user action: millisecond clock plus random bits."""
    return f"order-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def validate_quantity(quantity) -> int:
    try:
        qty = int(quantity)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Quantity must be a whole number.") from exc
    if isinstance(quantity, float) and quantity != qty:
        raise ValidationError("Quantity must be a whole number.")
    if qty < 1:
        raise ValidationError("Quantity must be at least 1.")
    return qty


class OrderSubmission:
    """
    Builds order requests for the gateway. Guards run before any request is
    sent; refreshing caches afterwards is the caller's job.
    """

    def __init__(
        self, gateway, key_factory: Callable[[], str] = new_idempotency_key
    ) -> None:
        self._gateway = gateway
        self._key_factory = key_factory

    async def place_order(
        self,
        session: Optional[Session],
        product_id: str,
        quantity,
        idempotency_key: Optional[str] = None,
    ) -> OrderReceipt:
        """
        Submit one order attempt. Passing the key of an earlier attempt
        resubmits that same attempt; the gateway then answers with a replay.
        """
        guard.require(session, "purchase")
        qty = validate_quantity(quantity)
        if not product_id:
            raise ValidationError("Choose a product first.")

        key = idempotency_key or self._key_factory()
        receipt = await self._gateway.create_order(
            session.authorization, product_id, qty, key
        )
        if receipt.replay:
            _logger.info(f"Order request {key} was a replay; no new order created")
        else:
            order_id = receipt.order.id if receipt.order else "?"
            _logger.info(f"Order {order_id} created with key {key}")
        return receipt

    async def cancel_order(self, session: Optional[Session], order: Order) -> Order:
        """Cancel a CREATED order; returns the local record moved to CANCELLED."""
        guard.require_cancel(session, order)
        updated = await self._gateway.cancel_order(session.authorization, order.id)
        _logger.info(f"Order {order.id} cancelled")
        if updated is not None and updated.status == "CANCELLED":
            return updated
        return dataclasses.replace(order, status="CANCELLED")
