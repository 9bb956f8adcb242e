# provide dataclass models for everything exchanged with the gateway

from dataclasses import dataclass
from typing import Literal, Optional, Tuple

Role = Literal["CUSTOMER", "SELLER", "ADMIN"]
OrderStatus = Literal["CREATED", "CONFIRMED", "CANCELLED", "FAILED"]

ROLES: Tuple[str, ...] = ("CUSTOMER", "SELLER", "ADMIN")
SELF_REGISTER_ROLES: Tuple[str, ...] = ("CUSTOMER", "SELLER")


@dataclass(frozen=True)
class User:
    id: str
    name: str
    email: str
    role: Role


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    price: float
    stock: int


@dataclass(frozen=True)
class Order:
    id: str
    user_id: str
    product_id: str
    quantity: int
    unit_price: float
    total_amount: float
    status: OrderStatus
    created_at: Optional[str] = None
    failure_reason: Optional[str] = None


@dataclass(frozen=True)
class Session:
    access_token: str
    token_type: str
    expires_at: Optional[int]  # epoch seconds, None if the gateway sent none
    user: User

    @property
    def authorization(self) -> str:
        return f"{self.token_type or 'Bearer'} {self.access_token}"


@dataclass(frozen=True)
class OrderReceipt:
    """
    Outcome of a create-order call.

    replay is True when the gateway recognised the idempotency key and
    answered with the order it had already created.
    """

    order: Optional[Order]
    replay: bool
    idempotency_key: str
    correlation_id: Optional[str] = None


@dataclass(frozen=True)
class SagaStep:
    order_id: str
    step_name: str
    step_status: str
    retry_count: int
    compensation: bool
    detail: Optional[str]
    created_at: Optional[str]
