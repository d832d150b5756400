"""
In-process store with the same surface as PostgresStore. One asyncio.Lock serializes transactions;
a transaction works on the live tables and restores a snapshot if its body raises.
Single-process only: used by STORE_BACKEND=memory for local runs and by the test suite.
"""
import asyncio
import copy
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator

from storefront.errors import InvalidTransitionError, NotFoundError
from storefront.models import Delivery, Employee, Order, utcnow
from storefront.order_state import DeliveryStatus, OrderStatus, ReturnMethod, ReturnStatus


class _Tables:
    def __init__(self):
        self.orders: dict[str, Order] = {}
        self.deliveries: dict[str, Delivery] = {}
        self.employees: dict[str, Employee] = {}


class MemoryTransaction:
    def __init__(self, tables: _Tables):
        self.tables = tables

    async def get_order(self, order_id: str, for_update: bool = False) -> Order | None:
        order = self.tables.orders.get(order_id)
        return order.model_copy(deep=True) if order else None

    async def get_delivery(self, delivery_id: str, for_update: bool = False) -> Delivery | None:
        delivery = self.tables.deliveries.get(delivery_id)
        return delivery.model_copy() if delivery else None

    async def get_delivery_for_order(self, order_id: str, for_update: bool = False) -> Delivery | None:
        for delivery in self.tables.deliveries.values():
            if delivery.order_id == order_id:
                return delivery.model_copy()
        return None

    async def get_employee(self, employee_id: str) -> Employee | None:
        employee = self.tables.employees.get(employee_id)
        return employee.model_copy() if employee else None

    async def insert_order(self, order: Order) -> Order:
        self.tables.orders[order.id] = order.model_copy(deep=True)
        return order

    async def insert_delivery(self, delivery: Delivery) -> Delivery:
        if delivery.order_id not in self.tables.orders:
            raise NotFoundError(f"Order {delivery.order_id} not found")
        if delivery.delivery_person_id not in self.tables.employees:
            raise NotFoundError(f"Employee {delivery.delivery_person_id} not found")
        if await self.get_delivery_for_order(delivery.order_id) is not None:
            raise InvalidTransitionError(f"Order {delivery.order_id} already has a delivery")
        self.tables.deliveries[delivery.id] = delivery.model_copy()
        return delivery

    async def set_order_status(self, order_id: str, status: OrderStatus) -> Order:
        order = self.tables.orders[order_id]
        order.status = status
        order.updated_at = utcnow()
        return order.model_copy(deep=True)

    async def set_delivery_status(self, delivery_id: str, status: DeliveryStatus) -> Delivery:
        delivery = self.tables.deliveries[delivery_id]
        delivery.status = status
        delivery.updated_at = utcnow()
        return delivery.model_copy()

    async def set_return(
        self,
        order_id: str,
        status: ReturnStatus,
        method: ReturnMethod | None = None,
        reason: str | None = None,
        requested_at: datetime | None = None,
    ) -> Order:
        order = self.tables.orders[order_id]
        order.return_status = status
        if method is not None:
            order.return_method = method
            order.return_reason = reason
            order.return_request_at = requested_at
        order.updated_at = utcnow()
        return order.model_copy(deep=True)


class MemoryStore:
    def __init__(self):
        self._tables = _Tables()
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[MemoryTransaction]:
        async with self._lock:
            snapshot = copy.deepcopy(self._tables)
            try:
                yield MemoryTransaction(self._tables)
            except BaseException:
                self._tables = snapshot
                raise

    async def add_employee(self, employee: Employee) -> Employee:
        async with self._lock:
            self._tables.employees[employee.id] = employee.model_copy()
        return employee

    async def list_employees(self) -> list[Employee]:
        return sorted(
            (e.model_copy() for e in self._tables.employees.values()),
            key=lambda e: (e.last_name, e.first_name),
        )

    async def list_orders(
        self,
        customer_id: str | None = None,
        order_ids: list[str] | None = None,
    ) -> list[Order]:
        orders = [
            o.model_copy(deep=True)
            for o in self._tables.orders.values()
            if (customer_id is None or o.customer_id == customer_id)
            and (order_ids is None or o.id in order_ids)
        ]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    async def list_deliveries(
        self,
        delivery_person_id: str | None = None,
        statuses: list[DeliveryStatus] | None = None,
        order_ids: list[str] | None = None,
        newest_update_first: bool = False,
    ) -> list[Delivery]:
        deliveries = [
            d.model_copy()
            for d in self._tables.deliveries.values()
            if (delivery_person_id is None or d.delivery_person_id == delivery_person_id)
            and (statuses is None or d.status in statuses)
            and (order_ids is None or d.order_id in order_ids)
        ]
        key = (lambda d: d.updated_at) if newest_update_first else (lambda d: d.created_at)
        return sorted(deliveries, key=key, reverse=True)

    async def close(self) -> None:
        pass
