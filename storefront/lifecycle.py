"""
Order lifecycle engine: the mutation entry points for admin, delivery employee and customer.

Each entry point checks the acting principal's role first, then reads the rows it validates against
(FOR UPDATE on Postgres, order row before delivery row) and writes, all inside one store transaction.
A rejected request raises before any write, so the transaction rolls back with nothing to undo.

`store` is a PostgresStore or MemoryStore; both expose transaction() and the same read methods.
"""
import logging
import uuid
from datetime import datetime, timezone

from storefront.errors import InvalidOrderError, InvalidTransitionError, NotAuthorizedError, NotFoundError, StoreError
from storefront.metrics import (
    deliveries_assigned_total,
    orders_placed_total,
    store_failures_total,
    transitions_applied_total,
    transitions_rejected_total,
)
from storefront.models import ActingPrincipal, Address, Delivery, Order, OrderItem, Payment, Role, utcnow
from storefront.order_state import (
    TERMINAL_DELIVERY_STATUSES,
    TERMINAL_RETURN_STATUSES,
    DeliveryStatus,
    OrderStatus,
    OrderType,
    PaymentMethod,
    ReturnMethod,
    ReturnStatus,
    can_assign_delivery,
    can_cancel,
    can_request_return,
    is_delivery_frozen,
    is_valid_delivery_transition,
    is_valid_order_transition,
    resolve_allowed_return_statuses,
)

logger = logging.getLogger(__name__)


def require_role(principal: ActingPrincipal, role: Role) -> None:
    if principal.role != role:
        raise NotAuthorizedError(f"{role.value.lower()} role required")


def _reject(entity: str, current: str | None, attempted: str, detail: str) -> InvalidTransitionError:
    transitions_rejected_total.labels(entity=entity, current_state=current or "NONE", attempted=attempted).inc()
    logger.warning("Rejected %s transition %s -> %s: %s", entity, current, attempted, detail)
    return InvalidTransitionError(detail, current_state=current, target=attempted)


def _forbid(entity: str, principal: ActingPrincipal, attempted: str, detail: str) -> NotAuthorizedError:
    transitions_rejected_total.labels(entity=entity, current_state="FORBIDDEN", attempted=attempted).inc()
    logger.warning("Forbidden %s write by %s %s: %s", entity, principal.role.value, principal.id, detail)
    return NotAuthorizedError(detail)


async def _order_or_404(tx, order_id: str) -> Order:
    order = await tx.get_order(order_id, for_update=True)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


async def update_order_status(
    store,
    principal: ActingPrincipal,
    order_id: str,
    target: OrderStatus,
) -> Order:
    """Admin sets the order status; target must be in the allowed set for the current state."""
    require_role(principal, Role.ADMIN)
    try:
        async with store.transaction() as tx:
            order = await _order_or_404(tx, order_id)
            delivery = await tx.get_delivery_for_order(order_id, for_update=True)
            delivery_status = delivery.status if delivery else None
            if not is_valid_order_transition(order.status, order.type, delivery_status, target):
                raise _reject(
                    "order",
                    order.status.value,
                    target.value,
                    f"Cannot move {order.type.value} order from {order.status.value} to {target.value}"
                    + (f" while delivery is {delivery_status.value}" if delivery_status else ""),
                )
            updated = await tx.set_order_status(order_id, target)
    except StoreError:
        store_failures_total.inc()
        raise
    transitions_applied_total.labels(entity="order", target=target.value).inc()
    logger.info("Order %s status %s -> %s", order_id, order.status.value, target.value)
    return updated


async def assign_delivery(
    store,
    principal: ActingPrincipal,
    order_id: str,
    employee_id: str,
) -> tuple[Order, Delivery]:
    """
    Admin assigns an ACCEPTED delivery order to an employee.
    Creates the Delivery (PENDING) and flips the order to ASSIGNED_TO_DELIVERY in one transaction:
    either both writes land or neither does.
    """
    require_role(principal, Role.ADMIN)
    try:
        async with store.transaction() as tx:
            order = await _order_or_404(tx, order_id)
            existing = await tx.get_delivery_for_order(order_id, for_update=True)
            if not can_assign_delivery(order.type, order.status, existing is not None):
                if order.type != OrderType.DELIVERY:
                    detail = "Only delivery orders can be assigned to a delivery employee"
                elif existing is not None:
                    detail = f"Order {order_id} already has a delivery"
                else:
                    detail = f"Order must be ACCEPTED to assign delivery (is {order.status.value})"
                raise _reject("order", order.status.value, OrderStatus.ASSIGNED_TO_DELIVERY.value, detail)
            if await tx.get_employee(employee_id) is None:
                raise NotFoundError(f"Employee {employee_id} not found")

            delivery = await tx.insert_delivery(
                Delivery(
                    id=str(uuid.uuid4()),
                    status=DeliveryStatus.PENDING,
                    order_id=order_id,
                    delivery_person_id=employee_id,
                )
            )
            updated = await tx.set_order_status(order_id, OrderStatus.ASSIGNED_TO_DELIVERY)
    except StoreError:
        store_failures_total.inc()
        raise
    deliveries_assigned_total.inc()
    transitions_applied_total.labels(entity="order", target=OrderStatus.ASSIGNED_TO_DELIVERY.value).inc()
    logger.info("Order %s assigned to employee %s (delivery %s)", order_id, employee_id, delivery.id)
    return updated, delivery


async def update_delivery_status(
    store,
    principal: ActingPrincipal,
    delivery_id: str,
    target: DeliveryStatus,
) -> Delivery:
    """Assigned employee advances the delivery. DELIVERED does not complete the order; admin does that."""
    require_role(principal, Role.EMPLOYEE)
    try:
        async with store.transaction() as tx:
            # order row before delivery row, as in the admin entry points
            found = await tx.get_delivery(delivery_id)
            if found is None:
                raise NotFoundError(f"Delivery {delivery_id} not found")
            order = await _order_or_404(tx, found.order_id)
            delivery = await tx.get_delivery(delivery_id, for_update=True)
            if delivery.delivery_person_id != principal.id:
                raise _forbid("delivery", principal, target.value, "Delivery is assigned to another employee")
            if delivery.status in TERMINAL_DELIVERY_STATUSES:
                raise _reject(
                    "delivery",
                    delivery.status.value,
                    target.value,
                    f"Delivery is already {delivery.status.value}",
                )
            if is_delivery_frozen(delivery.status, order.status):
                raise _reject(
                    "delivery",
                    delivery.status.value,
                    target.value,
                    f"Order is {order.status.value}; delivery can no longer change",
                )
            if not is_valid_delivery_transition(delivery.status, target, order.status):
                raise _reject(
                    "delivery",
                    delivery.status.value,
                    target.value,
                    f"Cannot move delivery from {delivery.status.value} to {target.value}",
                )
            updated = await tx.set_delivery_status(delivery_id, target)
    except StoreError:
        store_failures_total.inc()
        raise
    transitions_applied_total.labels(entity="delivery", target=target.value).inc()
    logger.info("Delivery %s status %s -> %s", delivery_id, delivery.status.value, target.value)
    return updated


async def request_return(
    store,
    principal: ActingPrincipal,
    order_id: str,
    method: ReturnMethod,
    reason: str,
) -> Order:
    """Owning customer opens a return on a COMPLETED order that has none yet."""
    require_role(principal, Role.CUSTOMER)
    reason = (reason or "").strip()
    try:
        async with store.transaction() as tx:
            order = await _order_or_404(tx, order_id)
            if order.customer_id != principal.id:
                raise _forbid("return", principal, ReturnStatus.PENDING.value, "Order belongs to another customer")
            current = order.return_status.value if order.return_status else None
            if order.return_status is not None:
                raise _reject("return", current, ReturnStatus.PENDING.value, "A return was already requested for this order")
            if not can_request_return(order.status, order.return_status):
                raise _reject(
                    "return",
                    current,
                    ReturnStatus.PENDING.value,
                    f"Only COMPLETED orders can be returned (order is {order.status.value})",
                )
            if not reason:
                raise _reject("return", current, ReturnStatus.PENDING.value, "Return method and reason are required")
            updated = await tx.set_return(
                order_id,
                ReturnStatus.PENDING,
                method=method,
                reason=reason,
                requested_at=utcnow(),
            )
    except StoreError:
        store_failures_total.inc()
        raise
    transitions_applied_total.labels(entity="return", target=ReturnStatus.PENDING.value).inc()
    logger.info("Return requested for order %s via %s", order_id, method.value)
    return updated


async def update_return_status(
    store,
    principal: ActingPrincipal,
    order_id: str,
    target: ReturnStatus,
) -> Order:
    """Admin advances an open return. REFUNDED and CANCELLED are final."""
    require_role(principal, Role.ADMIN)
    try:
        async with store.transaction() as tx:
            order = await _order_or_404(tx, order_id)
            current = order.return_status.value if order.return_status else None
            if order.return_status is None:
                raise _reject("return", current, target.value, "Order has no return request")
            if order.return_status in TERMINAL_RETURN_STATUSES:
                raise _reject("return", current, target.value, f"Return is already {current}")
            if target not in resolve_allowed_return_statuses(order.return_status):
                raise _reject("return", current, target.value, f"Cannot move return from {current} to {target.value}")
            updated = await tx.set_return(order_id, target)
    except StoreError:
        store_failures_total.inc()
        raise
    transitions_applied_total.labels(entity="return", target=target.value).inc()
    logger.info("Order %s return status %s -> %s", order_id, current, target.value)
    return updated


async def cancel_order(store, principal: ActingPrincipal, order_id: str) -> Order:
    """Owning customer cancels a PENDING order. COMPLETED orders go through request_return instead."""
    require_role(principal, Role.CUSTOMER)
    try:
        async with store.transaction() as tx:
            order = await _order_or_404(tx, order_id)
            if order.customer_id != principal.id:
                raise _forbid("order", principal, OrderStatus.CANCELLED.value, "Order belongs to another customer")
            if not can_cancel(order.status):
                if order.status == OrderStatus.COMPLETED:
                    detail = "Completed orders cannot be cancelled; request a return instead"
                else:
                    detail = f"Only PENDING orders can be cancelled (order is {order.status.value})"
                raise _reject("order", order.status.value, OrderStatus.CANCELLED.value, detail)
            updated = await tx.set_order_status(order_id, OrderStatus.CANCELLED)
    except StoreError:
        store_failures_total.inc()
        raise
    transitions_applied_total.labels(entity="order", target=OrderStatus.CANCELLED.value).inc()
    logger.info("Order %s cancelled by customer %s", order_id, principal.id)
    return updated


async def place_order(
    store,
    principal: ActingPrincipal,
    order_type: OrderType,
    items: list[OrderItem],
    payment_method: PaymentMethod,
    address: Address | None = None,
    pickup_time: datetime | None = None,
) -> Order:
    """
    Checkout: create a PENDING order with its items and a simulated payment record.
    Delivery orders need a full address and no pickup time; pickup orders keep only the optional pickup time.
    """
    require_role(principal, Role.CUSTOMER)
    if not items:
        raise InvalidOrderError("Order must contain at least one item")
    if order_type == OrderType.DELIVERY:
        if address is None:
            raise InvalidOrderError("Delivery orders require a delivery address")
        if pickup_time is not None:
            raise InvalidOrderError("Delivery orders cannot have a pickup time")
    else:
        address = None
        if pickup_time is not None and pickup_time.tzinfo is None:
            pickup_time = pickup_time.replace(tzinfo=timezone.utc)

    amount = round(sum(i.unit_price * i.quantity for i in items), 2)
    order = Order(
        id=str(uuid.uuid4()),
        customer_id=principal.id,
        type=order_type,
        status=OrderStatus.PENDING,
        pickup_time=pickup_time,
        items=items,
        payment=Payment(amount=amount, payment_method=payment_method),
        **(address.model_dump() if address else {}),
    )
    try:
        async with store.transaction() as tx:
            await tx.insert_order(order)
    except StoreError:
        store_failures_total.inc()
        raise
    orders_placed_total.labels(order_type=order_type.value).inc()
    logger.info("Order %s placed by customer %s (%s, %.2f)", order.id, principal.id, order_type.value, amount)
    return order
