# src/gateway/api.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from core.errors import RemoteError
from gateway import models
from gateway.client import GatewayClient
from utils.logger import get_logger

_logger = get_logger(__name__)


# ---------------------------
# Payload conversion
# ---------------------------


def _opt_str(val) -> Optional[str]:
    return None if val is None else str(val)


def to_user(payload: Dict[str, Any]) -> models.User:
    role = str(payload["role"]).upper()
    if role not in models.ROLES:
        raise ValueError(f"unknown role {role!r}")
    return models.User(
        id=str(payload["id"]),
        name=str(payload.get("name") or ""),
        email=str(payload.get("email") or ""),
        role=role,
    )


def to_product(payload: Dict[str, Any]) -> models.Product:
    return models.Product(
        id=str(payload["id"]),
        name=str(payload["name"]),
        price=float(payload.get("price") or 0),
        stock=int(payload.get("stock") or 0),
    )


def to_order(payload: Dict[str, Any]) -> models.Order:
    return models.Order(
        id=str(payload["id"]),
        user_id=str(payload["userId"]),
        product_id=str(payload["productId"]),
        quantity=int(payload["quantity"]),
        unit_price=float(payload.get("unitPrice") or 0),
        total_amount=float(payload.get("totalAmount") or 0),
        status=str(payload["status"]).upper(),
        created_at=_opt_str(payload.get("createdAt")),
        failure_reason=_opt_str(payload.get("failureReason")),
    )


def to_saga_step(payload: Dict[str, Any]) -> models.SagaStep:
    return models.SagaStep(
        order_id=str(payload["orderId"]),
        step_name=str(payload["stepName"]),
        step_status=str(payload["stepStatus"]),
        retry_count=int(payload.get("retryCount") or 0),
        compensation=bool(payload.get("compensation")),
        detail=_opt_str(payload.get("detail")),
        created_at=_opt_str(payload.get("createdAt")),
    )


def _convert(converter, payload, what: str):
    try:
        return converter(payload)
    except (KeyError, TypeError, ValueError) as exc:
        _logger.warning(f"Malformed {what} from gateway: {exc!r}")
        raise RemoteError(f"The gateway returned a malformed {what}.") from exc


def _convert_list(converter, payload, what: str) -> list:
    # paginated answers carry the rows under "items"
    if isinstance(payload, dict) and isinstance(payload.get("items"), list):
        payload = payload["items"]
    if not isinstance(payload, list):
        return []
    return [_convert(converter, item, what) for item in payload]


class Gateway:
    """
    Typed operations offered by the storefront gateway.

    Every method maps one gateway endpoint; errors surface as RemoteError.
    """

    def __init__(self, client: GatewayClient) -> None:
        self._client = client

    # ---------------------------
    # Users & authentication
    # ---------------------------

    async def register_user(
        self, name: str, email: str, password: str, role: str
    ) -> models.User:
        payload = await self._client.request(
            "POST",
            "/users",
            json={"name": name, "email": email, "password": password, "role": role},
            fallback="Registration failed.",
        )
        return _convert(to_user, payload, "user")

    async def login(self, email: str, password: str) -> Any:
        """Return the raw login payload; the session store owns its mapping."""
        return await self._client.request(
            "POST",
            "/users/login",
            json={"email": email, "password": password},
            fallback="Authentication failed.",
        )

    async def list_users(self, authorization: str) -> List[models.User]:
        payload = await self._client.request(
            "GET",
            "/users",
            authorization=authorization,
            fallback="Could not load the user directory.",
        )
        return _convert_list(to_user, payload, "user")

    # ---------------------------
    # Products
    # ---------------------------

    async def list_products(self) -> List[models.Product]:
        payload = await self._client.request(
            "GET", "/products", fallback="Could not load the product catalog."
        )
        return _convert_list(to_product, payload, "product")

    async def create_product(
        self, authorization: str, name: str, price: float, stock: int
    ) -> models.Product:
        payload = await self._client.request(
            "POST",
            "/products",
            authorization=authorization,
            json={"name": name, "price": price, "stock": stock},
            fallback="Could not list the product.",
        )
        return _convert(to_product, payload, "product")

    # ---------------------------
    # Orders
    # ---------------------------

    async def list_orders(self, authorization: str) -> List[models.Order]:
        payload = await self._client.request(
            "GET",
            "/orders",
            authorization=authorization,
            fallback="Could not load orders.",
        )
        return _convert_list(to_order, payload, "order")

    async def create_order(
        self,
        authorization: str,
        product_id: str,
        quantity: int,
        idempotency_key: str,
    ) -> models.OrderReceipt:
        payload = await self._client.request(
            "POST",
            "/orders",
            authorization=authorization,
            json={"productId": product_id, "quantity": quantity},
            headers={"Idempotency-Key": idempotency_key},
            fallback="Could not place the order.",
        )
        if not isinstance(payload, dict):
            payload = {}
        order_payload = payload.get("order")
        order = _convert(to_order, order_payload, "order") if order_payload else None
        return models.OrderReceipt(
            order=order,
            replay=bool(payload.get("idempotentReplay")),
            idempotency_key=idempotency_key,
            correlation_id=_opt_str(payload.get("correlationId")),
        )

    async def cancel_order(
        self, authorization: str, order_id: str
    ) -> Optional[models.Order]:
        payload = await self._client.request(
            "PATCH",
            f"/orders/{order_id}/cancel",
            authorization=authorization,
            fallback="Could not cancel the order.",
        )
        if not isinstance(payload, dict) or not payload:
            return None
        return _convert(to_order, payload, "order")

    async def order_saga(
        self, authorization: str, order_id: str
    ) -> List[models.SagaStep]:
        payload = await self._client.request(
            "GET",
            f"/orders/{order_id}/saga",
            authorization=authorization,
            fallback="Could not load the order history.",
        )
        return _convert_list(to_saga_step, payload, "saga step")
