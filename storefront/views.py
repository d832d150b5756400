"""
Read models for each actor's screens. The offered options come from the same resolvers the mutation guards use.
"""
from pydantic import BaseModel

from storefront.lifecycle import require_role
from storefront.models import ActingPrincipal, Delivery, Employee, Order, Role
from storefront.order_state import (
    TERMINAL_DELIVERY_STATUSES,
    TERMINAL_ORDER_STATUSES,
    DeliveryStatus,
    OrderStatus,
    ReturnStatus,
    can_assign_delivery,
    can_cancel,
    can_request_return,
    is_delivery_frozen,
    order_number,
    resolve_allowed_delivery_statuses,
    resolve_allowed_order_statuses,
    resolve_allowed_return_statuses,
    status_label,
)


class AdminOrderView(BaseModel):
    order_number: str
    status_label: str
    order: Order
    delivery: Delivery | None = None
    allowed_statuses: list[OrderStatus]
    can_change_status: bool
    can_assign_delivery: bool
    allowed_return_statuses: list[ReturnStatus]


class EmployeeDeliveryView(BaseModel):
    order_number: str
    status_label: str
    delivery: Delivery
    order: Order
    allowed_statuses: list[DeliveryStatus]
    can_change_status: bool


class CustomerOrderView(BaseModel):
    order_number: str
    status_label: str
    order: Order
    delivery: Delivery | None = None
    can_cancel: bool
    can_request_return: bool


async def _deliveries_by_order(store, orders: list[Order]) -> dict[str, Delivery]:
    if not orders:
        return {}
    deliveries = await store.list_deliveries(order_ids=[o.id for o in orders])
    return {d.order_id: d for d in deliveries}


async def admin_orders(store, principal: ActingPrincipal) -> list[AdminOrderView]:
    require_role(principal, Role.ADMIN)
    orders = await store.list_orders()
    deliveries = await _deliveries_by_order(store, orders)
    views = []
    for order in orders:
        delivery = deliveries.get(order.id)
        views.append(AdminOrderView(
            order_number=order_number(order.id),
            status_label=status_label(order.status),
            order=order,
            delivery=delivery,
            allowed_statuses=resolve_allowed_order_statuses(
                order.status, order.type, delivery.status if delivery else None
            ),
            can_change_status=order.status not in TERMINAL_ORDER_STATUSES,
            can_assign_delivery=can_assign_delivery(order.type, order.status, delivery is not None),
            allowed_return_statuses=resolve_allowed_return_statuses(order.return_status),
        ))
    return views


async def admin_employees(store, principal: ActingPrincipal) -> list[Employee]:
    require_role(principal, Role.ADMIN)
    return await store.list_employees()


async def employee_deliveries(
    store,
    principal: ActingPrincipal,
    completed: bool = False,
) -> list[EmployeeDeliveryView]:
    """Own deliveries: all of them newest first, or only finished ones most recently updated first."""
    require_role(principal, Role.EMPLOYEE)
    deliveries = await store.list_deliveries(
        delivery_person_id=principal.id,
        statuses=sorted(TERMINAL_DELIVERY_STATUSES, key=lambda s: s.value) if completed else None,
        newest_update_first=completed,
    )
    if not deliveries:
        return []
    orders = {o.id: o for o in await store.list_orders(order_ids=[d.order_id for d in deliveries])}
    return [
        EmployeeDeliveryView(
            order_number=order_number(d.order_id),
            status_label=status_label(d.status),
            delivery=d,
            order=orders[d.order_id],
            allowed_statuses=resolve_allowed_delivery_statuses(d.status, orders[d.order_id].status),
            can_change_status=not is_delivery_frozen(d.status, orders[d.order_id].status),
        )
        for d in deliveries
        if d.order_id in orders
    ]


async def customer_orders(store, principal: ActingPrincipal) -> list[CustomerOrderView]:
    require_role(principal, Role.CUSTOMER)
    orders = await store.list_orders(customer_id=principal.id)
    deliveries = await _deliveries_by_order(store, orders)
    return [
        CustomerOrderView(
            order_number=order_number(o.id),
            status_label=status_label(o.status),
            order=o,
            delivery=deliveries.get(o.id),
            can_cancel=can_cancel(o.status),
            can_request_return=can_request_return(o.status, o.return_status),
        )
        for o in orders
    ]
