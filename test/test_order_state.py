"""Transition tables: what each actor may set next."""
import pytest

from storefront.order_state import (
    DeliveryStatus,
    OrderStatus,
    OrderType,
    ReturnStatus,
    can_assign_delivery,
    can_cancel,
    can_request_return,
    is_delivery_frozen,
    is_valid_delivery_transition,
    is_valid_order_transition,
    order_number,
    resolve_allowed_delivery_statuses,
    resolve_allowed_order_statuses,
    resolve_allowed_return_statuses,
    status_label,
)

TERMINAL = [OrderStatus.CANCELLED, OrderStatus.COMPLETED, OrderStatus.REJECTED]


@pytest.mark.parametrize("status", TERMINAL)
@pytest.mark.parametrize("order_type", list(OrderType))
@pytest.mark.parametrize("delivery_status", [None, *DeliveryStatus])
def test_terminal_orders_only_offer_themselves(status, order_type, delivery_status):
    assert resolve_allowed_order_statuses(status, order_type, delivery_status) == [status]


def test_pickup_table():
    assert resolve_allowed_order_statuses(OrderStatus.PENDING, OrderType.PICKUP) == [
        OrderStatus.PENDING, OrderStatus.ACCEPTED, OrderStatus.REJECTED,
    ]
    assert resolve_allowed_order_statuses(OrderStatus.ACCEPTED, OrderType.PICKUP) == [
        OrderStatus.ACCEPTED, OrderStatus.READY_FOR_PICKUP, OrderStatus.CANCELLED,
    ]
    assert resolve_allowed_order_statuses(OrderStatus.READY_FOR_PICKUP, OrderType.PICKUP) == [
        OrderStatus.READY_FOR_PICKUP, OrderStatus.COMPLETED, OrderStatus.CANCELLED,
    ]
    # not reachable for pickup orders, falls back to itself
    assert resolve_allowed_order_statuses(OrderStatus.ASSIGNED_TO_DELIVERY, OrderType.PICKUP) == [
        OrderStatus.ASSIGNED_TO_DELIVERY,
    ]


@pytest.mark.parametrize("status", list(OrderStatus))
def test_pickup_never_offers_delivery_status(status):
    allowed = set(resolve_allowed_order_statuses(status, OrderType.PICKUP))
    if status != OrderStatus.ASSIGNED_TO_DELIVERY:
        assert OrderStatus.ASSIGNED_TO_DELIVERY not in allowed


def test_delivery_table_before_assignment():
    assert resolve_allowed_order_statuses(OrderStatus.PENDING, OrderType.DELIVERY) == [
        OrderStatus.PENDING, OrderStatus.ACCEPTED, OrderStatus.REJECTED,
    ]
    assert resolve_allowed_order_statuses(OrderStatus.ACCEPTED, OrderType.DELIVERY) == [
        OrderStatus.ACCEPTED, OrderStatus.CANCELLED,
    ]
    assert resolve_allowed_order_statuses(OrderStatus.READY_FOR_PICKUP, OrderType.DELIVERY) == [
        OrderStatus.READY_FOR_PICKUP,
    ]


@pytest.mark.parametrize(
    "delivery_status, expected",
    [
        (DeliveryStatus.PENDING, [OrderStatus.ASSIGNED_TO_DELIVERY, OrderStatus.REJECTED, OrderStatus.CANCELLED]),
        (DeliveryStatus.PICKED_UP, [OrderStatus.ASSIGNED_TO_DELIVERY]),
        (DeliveryStatus.IN_TRANSIT, [OrderStatus.ASSIGNED_TO_DELIVERY]),
        (DeliveryStatus.DELIVERED, [OrderStatus.COMPLETED]),
        (DeliveryStatus.FAILED, [OrderStatus.REJECTED]),
        (DeliveryStatus.REJECTED, [OrderStatus.REJECTED]),
    ],
)
def test_assigned_delivery_drives_order_options(delivery_status, expected):
    got = resolve_allowed_order_statuses(OrderStatus.ASSIGNED_TO_DELIVERY, OrderType.DELIVERY, delivery_status)
    assert got == expected


def test_delivery_table():
    assert resolve_allowed_delivery_statuses(DeliveryStatus.PENDING) == [
        DeliveryStatus.PENDING, DeliveryStatus.PICKED_UP, DeliveryStatus.REJECTED,
    ]
    assert resolve_allowed_delivery_statuses(DeliveryStatus.PICKED_UP) == [
        DeliveryStatus.PICKED_UP, DeliveryStatus.IN_TRANSIT, DeliveryStatus.REJECTED,
    ]
    assert resolve_allowed_delivery_statuses(DeliveryStatus.IN_TRANSIT) == [
        DeliveryStatus.IN_TRANSIT, DeliveryStatus.DELIVERED, DeliveryStatus.FAILED, DeliveryStatus.REJECTED,
    ]
    for terminal in (DeliveryStatus.DELIVERED, DeliveryStatus.FAILED, DeliveryStatus.REJECTED):
        assert resolve_allowed_delivery_statuses(terminal) == [terminal]


def test_resolver_returns_fresh_lists():
    allowed = resolve_allowed_delivery_statuses(DeliveryStatus.PENDING)
    allowed.clear()
    assert resolve_allowed_delivery_statuses(DeliveryStatus.PENDING)


def test_order_guard():
    assert is_valid_order_transition(OrderStatus.ACCEPTED, OrderType.PICKUP, None, OrderStatus.READY_FOR_PICKUP)
    assert not is_valid_order_transition(OrderStatus.ACCEPTED, OrderType.PICKUP, None, OrderStatus.COMPLETED)
    # terminal statuses reject even their own value
    assert not is_valid_order_transition(OrderStatus.COMPLETED, OrderType.PICKUP, None, OrderStatus.COMPLETED)
    assert is_valid_order_transition(
        OrderStatus.ASSIGNED_TO_DELIVERY, OrderType.DELIVERY, DeliveryStatus.DELIVERED, OrderStatus.COMPLETED
    )
    assert not is_valid_order_transition(
        OrderStatus.ASSIGNED_TO_DELIVERY, OrderType.DELIVERY, DeliveryStatus.IN_TRANSIT, OrderStatus.COMPLETED
    )


def test_delivery_guard():
    assert is_valid_delivery_transition(DeliveryStatus.PENDING, DeliveryStatus.PICKED_UP)
    assert not is_valid_delivery_transition(DeliveryStatus.PENDING, DeliveryStatus.DELIVERED)
    assert not is_valid_delivery_transition(DeliveryStatus.DELIVERED, DeliveryStatus.DELIVERED)
    assert not is_valid_delivery_transition(DeliveryStatus.FAILED, DeliveryStatus.IN_TRANSIT)


def test_return_options():
    assert resolve_allowed_return_statuses(None) == []
    assert resolve_allowed_return_statuses(ReturnStatus.REFUNDED) == []
    assert resolve_allowed_return_statuses(ReturnStatus.CANCELLED) == []
    assert resolve_allowed_return_statuses(ReturnStatus.PENDING) == [
        ReturnStatus.APPROVED, ReturnStatus.RECEIVED, ReturnStatus.REFUNDED, ReturnStatus.REJECTED, ReturnStatus.CANCELLED,
    ]
    assert ReturnStatus.APPROVED in resolve_allowed_return_statuses(ReturnStatus.REJECTED)


def test_customer_and_assignment_predicates():
    assert can_cancel(OrderStatus.PENDING)
    assert not can_cancel(OrderStatus.ACCEPTED)
    assert can_request_return(OrderStatus.COMPLETED, None)
    assert not can_request_return(OrderStatus.COMPLETED, ReturnStatus.PENDING)
    assert not can_request_return(OrderStatus.READY_FOR_PICKUP, None)
    assert can_assign_delivery(OrderType.DELIVERY, OrderStatus.ACCEPTED, False)
    assert not can_assign_delivery(OrderType.DELIVERY, OrderStatus.ACCEPTED, True)
    assert not can_assign_delivery(OrderType.PICKUP, OrderStatus.ACCEPTED, False)
    assert not can_assign_delivery(OrderType.DELIVERY, OrderStatus.PENDING, False)


def test_display_helpers():
    assert order_number("clx9k2abc123def") == "ORD-123DEF"
    assert status_label(DeliveryStatus.PICKED_UP) == "Picked Up"
    assert status_label("ASSIGNED_TO_DELIVERY") == "Assigned To Delivery"


def test_closed_order_freezes_delivery():
    for closed in (OrderStatus.CANCELLED, OrderStatus.REJECTED):
        assert resolve_allowed_delivery_statuses(DeliveryStatus.PENDING, closed) == [DeliveryStatus.PENDING]
        assert is_delivery_frozen(DeliveryStatus.PENDING, closed)
        assert not is_valid_delivery_transition(DeliveryStatus.PENDING, DeliveryStatus.PICKED_UP, closed)
    assert not is_delivery_frozen(DeliveryStatus.IN_TRANSIT, OrderStatus.ASSIGNED_TO_DELIVERY)
    assert is_valid_delivery_transition(
        DeliveryStatus.IN_TRANSIT, DeliveryStatus.DELIVERED, OrderStatus.ASSIGNED_TO_DELIVERY
    )
