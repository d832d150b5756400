"""
Seed delivery employees into Postgres (onboarding lives outside this service).
Run: python -m storefront.seed emp-1:Jane:Doe emp-2:John:Roe
"""
import asyncio
import logging
import sys

from storefront.db import PostgresStore, close_pool, get_pool, init_schema
from storefront.models import Employee

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


def parse_employee(entry: str) -> Employee:
    """'id:First:Last' -> Employee."""
    parts = entry.split(":")
    if len(parts) != 3 or not all(parts):
        raise ValueError(f"Expected id:first_name:last_name, got {entry!r}")
    return Employee(id=parts[0], first_name=parts[1], last_name=parts[2])


async def seed(employees: list[Employee]) -> None:
    pool = await get_pool()
    try:
        await init_schema(pool)
        store = PostgresStore(pool)
        for employee in employees:
            await store.add_employee(employee)
            logger.info("Seeded employee %s (%s %s)", employee.id, employee.first_name, employee.last_name)
    finally:
        await close_pool()


def main() -> None:
    try:
        employees = [parse_employee(arg) for arg in sys.argv[1:]]
    except ValueError as e:
        logger.error("%s", e)
        sys.exit(2)
    if not employees:
        logger.error("Usage: python -m storefront.seed id:first_name:last_name [...]")
        sys.exit(2)
    asyncio.run(seed(employees))


if __name__ == "__main__":
    main()
