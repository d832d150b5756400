"""
Order lifecycle state machine. Static transition tables per actor, shared by the
read models (which statuses to offer) and the mutation guards (which writes to accept).
"""
from enum import Enum


class OrderType(str, Enum):
    PICKUP = "PICKUP"
    DELIVERY = "DELIVERY"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    READY_FOR_PICKUP = "READY_FOR_PICKUP"
    ASSIGNED_TO_DELIVERY = "ASSIGNED_TO_DELIVERY"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class DeliveryStatus(str, Enum):
    PENDING = "PENDING"
    PICKED_UP = "PICKED_UP"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"
    REJECTED = "REJECTED"


class ReturnStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    RECEIVED = "RECEIVED"
    REFUNDED = "REFUNDED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class ReturnMethod(str, Enum):
    UPS_STORE = "UPS_STORE"
    IN_STORE = "IN_STORE"


class PaymentMethod(str, Enum):
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"


TERMINAL_ORDER_STATUSES = frozenset({
    OrderStatus.CANCELLED,
    OrderStatus.COMPLETED,
    OrderStatus.REJECTED,
})
TERMINAL_DELIVERY_STATUSES = frozenset({
    DeliveryStatus.DELIVERED,
    DeliveryStatus.FAILED,
    DeliveryStatus.REJECTED,
})
TERMINAL_RETURN_STATUSES = frozenset({
    ReturnStatus.REFUNDED,
    ReturnStatus.CANCELLED,
})

# Statuses an admin may move an open return request to (PENDING is only set by the customer)
ADMIN_RETURN_TARGETS: list[ReturnStatus] = [
    ReturnStatus.APPROVED,
    ReturnStatus.RECEIVED,
    ReturnStatus.REFUNDED,
    ReturnStatus.REJECTED,
    ReturnStatus.CANCELLED,
]

# Admin: (order type, order status) -> allowed next order status, before any delivery exists
ORDER_TRANSITIONS: dict[tuple[OrderType, OrderStatus], list[OrderStatus]] = {
    (OrderType.PICKUP, OrderStatus.PENDING): [OrderStatus.PENDING, OrderStatus.ACCEPTED, OrderStatus.REJECTED],
    (OrderType.PICKUP, OrderStatus.ACCEPTED): [OrderStatus.ACCEPTED, OrderStatus.READY_FOR_PICKUP, OrderStatus.CANCELLED],
    (OrderType.PICKUP, OrderStatus.READY_FOR_PICKUP): [OrderStatus.READY_FOR_PICKUP, OrderStatus.COMPLETED, OrderStatus.CANCELLED],
    (OrderType.DELIVERY, OrderStatus.PENDING): [OrderStatus.PENDING, OrderStatus.ACCEPTED, OrderStatus.REJECTED],
    # ACCEPTED delivery orders wait here for assign-delivery
    (OrderType.DELIVERY, OrderStatus.ACCEPTED): [OrderStatus.ACCEPTED, OrderStatus.CANCELLED],
}

# Admin: delivery status -> allowed next order status, once a delivery is assigned
ASSIGNED_ORDER_TRANSITIONS: dict[DeliveryStatus, list[OrderStatus]] = {
    DeliveryStatus.PENDING: [OrderStatus.ASSIGNED_TO_DELIVERY, OrderStatus.REJECTED, OrderStatus.CANCELLED],
    DeliveryStatus.PICKED_UP: [OrderStatus.ASSIGNED_TO_DELIVERY],  # view-only while in progress
    DeliveryStatus.IN_TRANSIT: [OrderStatus.ASSIGNED_TO_DELIVERY],
    DeliveryStatus.DELIVERED: [OrderStatus.COMPLETED],
    DeliveryStatus.FAILED: [OrderStatus.REJECTED],
    DeliveryStatus.REJECTED: [OrderStatus.REJECTED],
}

# Assigned employee: current delivery status -> allowed next delivery status
DELIVERY_TRANSITIONS: dict[DeliveryStatus, list[DeliveryStatus]] = {
    DeliveryStatus.PENDING: [DeliveryStatus.PENDING, DeliveryStatus.PICKED_UP, DeliveryStatus.REJECTED],
    DeliveryStatus.PICKED_UP: [DeliveryStatus.PICKED_UP, DeliveryStatus.IN_TRANSIT, DeliveryStatus.REJECTED],
    DeliveryStatus.IN_TRANSIT: [
        DeliveryStatus.IN_TRANSIT,
        DeliveryStatus.DELIVERED,
        DeliveryStatus.FAILED,
        DeliveryStatus.REJECTED,
    ],
    DeliveryStatus.DELIVERED: [DeliveryStatus.DELIVERED],  # terminal
    DeliveryStatus.FAILED: [DeliveryStatus.FAILED],  # terminal
    DeliveryStatus.REJECTED: [DeliveryStatus.REJECTED],  # terminal
}


def resolve_allowed_order_statuses(
    status: OrderStatus,
    order_type: OrderType,
    delivery_status: DeliveryStatus | None = None,
) -> list[OrderStatus]:
    """Statuses the admin may set next. With a delivery assigned, its status drives the answer."""
    if status in TERMINAL_ORDER_STATUSES:
        return [status]
    if order_type == OrderType.DELIVERY and delivery_status is not None:
        return list(ASSIGNED_ORDER_TRANSITIONS.get(delivery_status, [status]))
    return list(ORDER_TRANSITIONS.get((order_type, status), [status]))


def resolve_allowed_delivery_statuses(
    status: DeliveryStatus,
    order_status: OrderStatus | None = None,
) -> list[DeliveryStatus]:
    """Statuses the assigned employee may set next. Nothing moves once the parent order is closed."""
    if order_status in TERMINAL_ORDER_STATUSES:
        return [status]
    return list(DELIVERY_TRANSITIONS.get(status, [status]))


def resolve_allowed_return_statuses(status: ReturnStatus | None) -> list[ReturnStatus]:
    """Statuses the admin may set on a return request. Empty when there is nothing to advance."""
    if status is None or status in TERMINAL_RETURN_STATUSES:
        return []
    return list(ADMIN_RETURN_TARGETS)


def is_valid_order_transition(
    status: OrderStatus,
    order_type: OrderType,
    delivery_status: DeliveryStatus | None,
    target: OrderStatus,
) -> bool:
    """True if the admin may move the order to target. Terminal orders accept nothing."""
    if status in TERMINAL_ORDER_STATUSES:
        return False
    return target in resolve_allowed_order_statuses(status, order_type, delivery_status)


def is_delivery_frozen(status: DeliveryStatus, order_status: OrderStatus | None = None) -> bool:
    """A finished delivery, or one whose order is closed, accepts no writes."""
    return status in TERMINAL_DELIVERY_STATUSES or order_status in TERMINAL_ORDER_STATUSES


def is_valid_delivery_transition(
    status: DeliveryStatus,
    target: DeliveryStatus,
    order_status: OrderStatus | None = None,
) -> bool:
    """True if the assigned employee may move the delivery to target."""
    if is_delivery_frozen(status, order_status):
        return False
    return target in resolve_allowed_delivery_statuses(status, order_status)


def can_assign_delivery(order_type: OrderType, status: OrderStatus, has_delivery: bool) -> bool:
    return order_type == OrderType.DELIVERY and status == OrderStatus.ACCEPTED and not has_delivery


def can_cancel(status: OrderStatus) -> bool:
    return status == OrderStatus.PENDING


def can_request_return(status: OrderStatus, return_status: ReturnStatus | None) -> bool:
    return status == OrderStatus.COMPLETED and return_status is None


def order_number(order_id: str) -> str:
    return f"ORD-{order_id[-6:].upper()}"


def status_label(status: str) -> str:
    """PICKED_UP -> 'Picked Up'."""
    value = status.value if isinstance(status, Enum) else str(status)
    return " ".join(word.capitalize() for word in value.split("_"))
