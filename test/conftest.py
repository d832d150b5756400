"""
Shared pytest fixtures: an in-memory store seeded with two delivery employees, and principals for each actor.
"""
import os

# Before storefront.config is imported anywhere
os.environ["STORE_BACKEND"] = "memory"

import pytest
import pytest_asyncio

from storefront.memory_store import MemoryStore
from storefront.models import ActingPrincipal, Employee, Role


@pytest_asyncio.fixture
async def store() -> MemoryStore:
    s = MemoryStore()
    await s.add_employee(Employee(id="emp-1", first_name="Erin", last_name="Diaz"))
    await s.add_employee(Employee(id="emp-2", first_name="Sam", last_name="Ortiz"))
    return s


@pytest.fixture
def admin() -> ActingPrincipal:
    return ActingPrincipal(id="admin-1", role=Role.ADMIN)


@pytest.fixture
def courier() -> ActingPrincipal:
    return ActingPrincipal(id="emp-1", role=Role.EMPLOYEE)


@pytest.fixture
def other_courier() -> ActingPrincipal:
    return ActingPrincipal(id="emp-2", role=Role.EMPLOYEE)


@pytest.fixture
def customer() -> ActingPrincipal:
    return ActingPrincipal(id="cust-1", role=Role.CUSTOMER)


@pytest.fixture
def other_customer() -> ActingPrincipal:
    return ActingPrincipal(id="cust-2", role=Role.CUSTOMER)
