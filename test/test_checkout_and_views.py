"""Checkout validation and the per-actor read models."""
from datetime import datetime

import pytest

from _helper import ADDRESS, ITEMS, assigned_delivery, completed_pickup, place_delivery, place_pickup, walk_delivery
from storefront import lifecycle, views
from storefront.errors import InvalidOrderError, InvalidTransitionError, NotAuthorizedError
from storefront.order_state import DeliveryStatus, OrderStatus, OrderType, PaymentMethod, ReturnMethod, ReturnStatus


@pytest.mark.asyncio
async def test_place_delivery_order(store, customer):
    order = await place_delivery(store, customer)
    assert order.status == OrderStatus.PENDING
    assert order.customer_id == customer.id
    assert (order.street, order.apt, order.city, order.state, order.zipcode) == (
        "12 Elm St", "4B", "Springfield", "IL", "62701",
    )
    assert order.pickup_time is None
    assert order.payment.amount == 62.5
    assert order.payment.payment_method == PaymentMethod.DEBIT_CARD
    assert [i.variant_id for i in order.items] == ["var-1", "var-2"]


@pytest.mark.asyncio
async def test_pickup_order_drops_address(store, customer):
    order = await lifecycle.place_order(
        store,
        customer,
        order_type=OrderType.PICKUP,
        items=ITEMS,
        payment_method=PaymentMethod.CREDIT_CARD,
        address=ADDRESS,
        pickup_time=datetime(2026, 11, 2, 15, 30),
    )
    assert order.street is None and order.city is None
    assert order.pickup_time.tzinfo is not None


@pytest.mark.asyncio
async def test_checkout_rejections(store, admin, customer):
    with pytest.raises(InvalidOrderError, match="address"):
        await lifecycle.place_order(
            store, customer, order_type=OrderType.DELIVERY, items=ITEMS, payment_method=PaymentMethod.CREDIT_CARD
        )
    with pytest.raises(InvalidOrderError, match="pickup time"):
        await lifecycle.place_order(
            store,
            customer,
            order_type=OrderType.DELIVERY,
            items=ITEMS,
            payment_method=PaymentMethod.CREDIT_CARD,
            address=ADDRESS,
            pickup_time=datetime(2026, 11, 2, 15, 30),
        )
    with pytest.raises(InvalidOrderError, match="at least one item"):
        await lifecycle.place_order(
            store, customer, order_type=OrderType.PICKUP, items=[], payment_method=PaymentMethod.CREDIT_CARD
        )
    with pytest.raises(NotAuthorizedError):
        await place_pickup(store, admin)
    assert await store.list_orders() == []


@pytest.mark.asyncio
async def test_admin_view_offers_resolver_options(store, admin, courier, customer):
    pickup = await place_pickup(store, customer)
    accepted, _ = await assigned_delivery(store, customer, admin)
    waiting = await place_delivery(store, customer)
    await lifecycle.update_order_status(store, admin, waiting.id, OrderStatus.ACCEPTED)

    by_id = {v.order.id: v for v in await views.admin_orders(store, admin)}
    assert by_id[pickup.id].allowed_statuses == [OrderStatus.PENDING, OrderStatus.ACCEPTED, OrderStatus.REJECTED]
    assert by_id[pickup.id].delivery is None
    assert not by_id[pickup.id].can_assign_delivery

    assert by_id[accepted.id].delivery.delivery_person_id == "emp-1"
    assert by_id[accepted.id].allowed_statuses == [
        OrderStatus.ASSIGNED_TO_DELIVERY, OrderStatus.REJECTED, OrderStatus.CANCELLED,
    ]
    assert by_id[waiting.id].can_assign_delivery
    assert by_id[waiting.id].status_label == "Accepted"

    with pytest.raises(NotAuthorizedError):
        await views.admin_orders(store, customer)


@pytest.mark.asyncio
async def test_admin_view_return_options(store, admin, customer):
    order = await completed_pickup(store, customer, admin)
    [view] = await views.admin_orders(store, admin)
    assert not view.can_change_status
    assert view.allowed_return_statuses == []

    await lifecycle.request_return(store, customer, order.id, ReturnMethod.IN_STORE, "wrong size")
    [view] = await views.admin_orders(store, admin)
    assert ReturnStatus.REFUNDED in view.allowed_return_statuses


@pytest.mark.asyncio
async def test_employees_listed_for_assignment(store, admin):
    employees = await views.admin_employees(store, admin)
    assert [e.id for e in employees] == ["emp-1", "emp-2"]


@pytest.mark.asyncio
async def test_employee_sees_only_own_deliveries(store, admin, courier, other_courier, customer):
    _, mine = await assigned_delivery(store, customer, admin, employee_id="emp-1")
    await assigned_delivery(store, customer, admin, employee_id="emp-2")

    [view] = await views.employee_deliveries(store, courier)
    assert view.delivery.id == mine.id
    assert view.allowed_statuses == [DeliveryStatus.PENDING, DeliveryStatus.PICKED_UP, DeliveryStatus.REJECTED]
    assert view.order.type == OrderType.DELIVERY
    assert await views.employee_deliveries(store, courier, completed=True) == []

    await walk_delivery(store, courier, mine.id, DeliveryStatus.REJECTED)
    [done] = await views.employee_deliveries(store, courier, completed=True)
    assert done.delivery.status == DeliveryStatus.REJECTED
    assert not done.can_change_status

    with pytest.raises(NotAuthorizedError):
        await views.employee_deliveries(store, admin)


@pytest.mark.asyncio
async def test_customer_history(store, admin, customer, other_customer):
    pending = await place_pickup(store, customer)
    completed = await completed_pickup(store, customer, admin)
    await place_pickup(store, other_customer)

    by_id = {v.order.id: v for v in await views.customer_orders(store, customer)}
    assert set(by_id) == {pending.id, completed.id}
    assert by_id[pending.id].can_cancel and not by_id[pending.id].can_request_return
    assert by_id[completed.id].can_request_return and not by_id[completed.id].can_cancel


@pytest.mark.asyncio
@pytest.mark.parametrize("closed", [OrderStatus.CANCELLED, OrderStatus.REJECTED])
async def test_employee_view_freezes_delivery_of_closed_order(store, admin, courier, customer, closed):
    order, delivery = await assigned_delivery(store, customer, admin)
    await lifecycle.update_order_status(store, admin, order.id, closed)

    [view] = await views.employee_deliveries(store, courier)
    assert view.delivery.status == DeliveryStatus.PENDING
    assert view.allowed_statuses == [DeliveryStatus.PENDING]
    assert not view.can_change_status
    with pytest.raises(InvalidTransitionError, match="can no longer change"):
        await lifecycle.update_delivery_status(store, courier, delivery.id, DeliveryStatus.PICKED_UP)
