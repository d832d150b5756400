"""
Async Postgres store: orders (+ items, payment), deliveries, employees.
Every lifecycle mutation runs in one transaction; rows it validates against are read FOR UPDATE,
so concurrent transitions on the same order are serialized instead of last-write-wins.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import AsyncIterator

import asyncpg
from asyncpg.exceptions import ForeignKeyViolationError, UniqueViolationError

from storefront.config import settings
from storefront.errors import InvalidTransitionError, NotFoundError, OrderLifecycleError, StoreError
from storefront.models import Delivery, Employee, Order, OrderItem, Payment
from storefront.order_state import DeliveryStatus, OrderStatus, ReturnMethod, ReturnStatus

logger = logging.getLogger(__name__)

_pool: asyncpg.Pool | None = None


async def get_pool() -> asyncpg.Pool:
    global _pool
    if _pool is None:
        _pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout,
        )
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None


async def init_schema(pool: asyncpg.Pool) -> None:
    async with pool.acquire() as conn:
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS employees (
                id VARCHAR(64) PRIMARY KEY,
                first_name VARCHAR(255) NOT NULL,
                last_name VARCHAR(255) NOT NULL,
                created_at TIMESTAMPTZ DEFAULT NOW()
            );
        """)
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS orders (
                id VARCHAR(64) PRIMARY KEY,
                customer_id VARCHAR(64) NOT NULL,
                type VARCHAR(20) NOT NULL,
                status VARCHAR(30) NOT NULL,
                street VARCHAR(255),
                apt VARCHAR(255),
                city VARCHAR(255),
                state VARCHAR(255),
                zipcode VARCHAR(20),
                pickup_time TIMESTAMPTZ,
                return_status VARCHAR(20),
                return_method VARCHAR(20),
                return_reason TEXT,
                return_request_at TIMESTAMPTZ,
                created_at TIMESTAMPTZ DEFAULT NOW(),
                updated_at TIMESTAMPTZ DEFAULT NOW()
            );
        """)
        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_orders_customer_id
            ON orders(customer_id);
        """)
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS order_items (
                id SERIAL PRIMARY KEY,
                order_id VARCHAR(64) NOT NULL REFERENCES orders(id) ON DELETE CASCADE,
                variant_id VARCHAR(64) NOT NULL,
                name VARCHAR(255) NOT NULL DEFAULT '',
                quantity INT NOT NULL CHECK (quantity > 0),
                unit_price NUMERIC(10, 2) NOT NULL
            );
        """)
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS payments (
                order_id VARCHAR(64) PRIMARY KEY REFERENCES orders(id) ON DELETE CASCADE,
                amount NUMERIC(10, 2) NOT NULL,
                payment_method VARCHAR(20) NOT NULL,
                created_at TIMESTAMPTZ DEFAULT NOW()
            );
        """)
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS deliveries (
                id VARCHAR(64) PRIMARY KEY,
                order_id VARCHAR(64) NOT NULL UNIQUE REFERENCES orders(id),
                delivery_person_id VARCHAR(64) NOT NULL REFERENCES employees(id),
                status VARCHAR(20) NOT NULL,
                created_at TIMESTAMPTZ DEFAULT NOW(),
                updated_at TIMESTAMPTZ DEFAULT NOW()
            );
        """)
        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_deliveries_delivery_person_id
            ON deliveries(delivery_person_id);
        """)


def _delivery_from_row(row: asyncpg.Record) -> Delivery:
    return Delivery(
        id=row["id"],
        status=row["status"],
        order_id=row["order_id"],
        delivery_person_id=row["delivery_person_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


async def _load_orders(conn: asyncpg.Connection, rows: list[asyncpg.Record]) -> list[Order]:
    if not rows:
        return []
    ids = [r["id"] for r in rows]
    items: dict[str, list[OrderItem]] = {}
    for r in await conn.fetch(
        "SELECT order_id, variant_id, name, quantity, unit_price FROM order_items WHERE order_id = ANY($1) ORDER BY id;",
        ids,
    ):
        items.setdefault(r["order_id"], []).append(
            OrderItem(variant_id=r["variant_id"], name=r["name"], quantity=r["quantity"], unit_price=float(r["unit_price"]))
        )
    payments = {
        r["order_id"]: Payment(amount=float(r["amount"]), payment_method=r["payment_method"])
        for r in await conn.fetch(
            "SELECT order_id, amount, payment_method FROM payments WHERE order_id = ANY($1);",
            ids,
        )
    }
    return [
        Order(**dict(r), items=items.get(r["id"], []), payment=payments.get(r["id"]))
        for r in rows
    ]


class PostgresTransaction:
    """Lifecycle operations bound to one connection inside an open transaction."""

    def __init__(self, conn: asyncpg.Connection):
        self.conn = conn

    async def get_order(self, order_id: str, for_update: bool = False) -> Order | None:
        lock = " FOR UPDATE" if for_update else ""
        row = await self.conn.fetchrow(f"SELECT * FROM orders WHERE id = $1{lock};", order_id)
        if row is None:
            return None
        return (await _load_orders(self.conn, [row]))[0]

    async def get_delivery(self, delivery_id: str, for_update: bool = False) -> Delivery | None:
        lock = " FOR UPDATE" if for_update else ""
        row = await self.conn.fetchrow(f"SELECT * FROM deliveries WHERE id = $1{lock};", delivery_id)
        return _delivery_from_row(row) if row else None

    async def get_delivery_for_order(self, order_id: str, for_update: bool = False) -> Delivery | None:
        lock = " FOR UPDATE" if for_update else ""
        row = await self.conn.fetchrow(f"SELECT * FROM deliveries WHERE order_id = $1{lock};", order_id)
        return _delivery_from_row(row) if row else None

    async def get_employee(self, employee_id: str) -> Employee | None:
        row = await self.conn.fetchrow(
            "SELECT id, first_name, last_name FROM employees WHERE id = $1;",
            employee_id,
        )
        return Employee(**dict(row)) if row else None

    async def insert_order(self, order: Order) -> Order:
        await self.conn.execute(
            """
            INSERT INTO orders (id, customer_id, type, status, street, apt, city, state, zipcode, pickup_time, created_at, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $11);
            """,
            order.id,
            order.customer_id,
            order.type.value,
            order.status.value,
            order.street,
            order.apt,
            order.city,
            order.state,
            order.zipcode,
            order.pickup_time,
            order.created_at,
        )
        await self.conn.executemany(
            """
            INSERT INTO order_items (order_id, variant_id, name, quantity, unit_price)
            VALUES ($1, $2, $3, $4, $5);
            """,
            [(order.id, i.variant_id, i.name, i.quantity, Decimal(str(i.unit_price))) for i in order.items],
        )
        if order.payment is not None:
            await self.conn.execute(
                "INSERT INTO payments (order_id, amount, payment_method) VALUES ($1, $2, $3);",
                order.id,
                Decimal(str(order.payment.amount)),
                order.payment.payment_method.value,
            )
        return order

    async def insert_delivery(self, delivery: Delivery) -> Delivery:
        try:
            await self.conn.execute(
                """
                INSERT INTO deliveries (id, order_id, delivery_person_id, status, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $5);
                """,
                delivery.id,
                delivery.order_id,
                delivery.delivery_person_id,
                delivery.status.value,
                delivery.created_at,
            )
        except UniqueViolationError:
            raise InvalidTransitionError(f"Order {delivery.order_id} already has a delivery")
        except ForeignKeyViolationError:
            raise NotFoundError(f"Employee {delivery.delivery_person_id} not found")
        return delivery

    async def set_order_status(self, order_id: str, status: OrderStatus) -> Order:
        await self.conn.execute(
            "UPDATE orders SET status = $1, updated_at = NOW() WHERE id = $2;",
            status.value,
            order_id,
        )
        return await self.get_order(order_id)

    async def set_delivery_status(self, delivery_id: str, status: DeliveryStatus) -> Delivery:
        row = await self.conn.fetchrow(
            "UPDATE deliveries SET status = $1, updated_at = NOW() WHERE id = $2 RETURNING *;",
            status.value,
            delivery_id,
        )
        return _delivery_from_row(row)

    async def set_return(
        self,
        order_id: str,
        status: ReturnStatus,
        method: ReturnMethod | None = None,
        reason: str | None = None,
        requested_at: datetime | None = None,
    ) -> Order:
        if method is None:
            await self.conn.execute(
                "UPDATE orders SET return_status = $1, updated_at = NOW() WHERE id = $2;",
                status.value,
                order_id,
            )
        else:
            await self.conn.execute(
                """
                UPDATE orders
                SET return_status = $1, return_method = $2, return_reason = $3, return_request_at = $4, updated_at = NOW()
                WHERE id = $5;
                """,
                status.value,
                method.value,
                reason,
                requested_at,
                order_id,
            )
        return await self.get_order(order_id)


class PostgresStore:
    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[PostgresTransaction]:
        """Yield a transaction; domain errors propagate as-is, driver errors become StoreError. Both roll back."""
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    yield PostgresTransaction(conn)
        except OrderLifecycleError:
            raise
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            # connection loss surfaces as InterfaceError or OSError
            logger.exception("Transaction rolled back: %s", e)
            raise StoreError("Failed to process request") from e

    async def add_employee(self, employee: Employee) -> Employee:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO employees (id, first_name, last_name) VALUES ($1, $2, $3)
                ON CONFLICT (id) DO UPDATE SET first_name = EXCLUDED.first_name, last_name = EXCLUDED.last_name;
                """,
                employee.id,
                employee.first_name,
                employee.last_name,
            )
        return employee

    async def list_employees(self) -> list[Employee]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("SELECT id, first_name, last_name FROM employees ORDER BY last_name, first_name;")
        return [Employee(**dict(r)) for r in rows]

    async def list_orders(
        self,
        customer_id: str | None = None,
        order_ids: list[str] | None = None,
    ) -> list[Order]:
        """Newest first. Filters combine with AND; None means no filter."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM orders
                WHERE ($1::varchar IS NULL OR customer_id = $1)
                  AND ($2::varchar[] IS NULL OR id = ANY($2))
                ORDER BY created_at DESC;
                """,
                customer_id,
                order_ids,
            )
            return await _load_orders(conn, rows)

    async def list_deliveries(
        self,
        delivery_person_id: str | None = None,
        statuses: list[DeliveryStatus] | None = None,
        order_ids: list[str] | None = None,
        newest_update_first: bool = False,
    ) -> list[Delivery]:
        """Newest created first, or most recently updated first."""
        order_by = "updated_at DESC" if newest_update_first else "created_at DESC"
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT * FROM deliveries
                WHERE ($1::varchar IS NULL OR delivery_person_id = $1)
                  AND ($2::varchar[] IS NULL OR status = ANY($2))
                  AND ($3::varchar[] IS NULL OR order_id = ANY($3))
                ORDER BY {order_by};
                """,
                delivery_person_id,
                [s.value for s in statuses] if statuses is not None else None,
                order_ids,
            )
        return [_delivery_from_row(r) for r in rows]

    async def close(self) -> None:
        await close_pool()
