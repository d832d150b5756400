"""
Persisted records and the acting principal. Stores hand these out; the engine never mutates them in place.
"""
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from storefront.order_state import (
    DeliveryStatus,
    OrderStatus,
    OrderType,
    PaymentMethod,
    ReturnMethod,
    ReturnStatus,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    CUSTOMER = "CUSTOMER"
    EMPLOYEE = "EMPLOYEE"
    ADMIN = "ADMIN"


class ActingPrincipal(BaseModel):
    id: str
    role: Role


class Employee(BaseModel):
    id: str
    first_name: str
    last_name: str


class OrderItem(BaseModel):
    variant_id: str
    name: str = ""
    quantity: int = Field(..., ge=1)
    unit_price: float = Field(..., ge=0)


class Payment(BaseModel):
    amount: float
    payment_method: PaymentMethod


class Address(BaseModel):
    street: str = Field(..., min_length=1)
    apt: str | None = None
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zipcode: str = Field(..., min_length=1)


class Delivery(BaseModel):
    id: str
    status: DeliveryStatus = DeliveryStatus.PENDING
    order_id: str
    delivery_person_id: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Order(BaseModel):
    id: str
    customer_id: str
    type: OrderType
    status: OrderStatus = OrderStatus.PENDING
    street: str | None = None
    apt: str | None = None
    city: str | None = None
    state: str | None = None
    zipcode: str | None = None
    pickup_time: datetime | None = None
    return_status: ReturnStatus | None = None
    return_method: ReturnMethod | None = None
    return_reason: str | None = None
    return_request_at: datetime | None = None
    items: list[OrderItem] = Field(default_factory=list)
    payment: Payment | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
