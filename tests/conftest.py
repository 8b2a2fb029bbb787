"""
Shared test fixtures.

Every test runs against the in-memory mock restaurant with no latency and
no random failures, an in-memory state store and a recording notifier.
Coroutines are driven with asyncio.run inside each test.
"""

import pytest

from tableside.client import TableOrderingClient
from tableside.persistence import MemoryStateStore, TableStateRepository
from tableside.schemas import Table
from tableside.services.notifications import InMemoryNotifier
from tableside.services.ordering_api import MockOrderingApi

TABLE = 7
CODE = "482913"


@pytest.fixture
def api():
    """Mock restaurant with a small menu and table 7 open."""
    api = MockOrderingApi(failure_rate=0, min_latency=0, max_latency=0)
    api.add_product("Milanesa napolitana", 14.50, "Platos")
    api.add_product("Empanada", 2.25, "Entradas")
    api.add_product("Agua mineral", 1.75, "")
    api.add_product("Old special", 9.99, "Platos", is_deleted=True)
    api.open_table(TABLE, code=CODE)
    api.add_table(8)
    return api


@pytest.fixture
def products(api):
    return {p.name: p for p in api._products.values()}


@pytest.fixture
def store():
    return MemoryStateStore()


@pytest.fixture
def state(store):
    return TableStateRepository(store, TABLE)


@pytest.fixture
def notifier():
    return InMemoryNotifier()


@pytest.fixture
def open_table():
    return Table(number=TABLE, is_open=True)


@pytest.fixture
def client(api, store, notifier):
    """Ordering client for table 7 with a long poll interval."""
    return TableOrderingClient(TABLE, api=api, store=store, notifier=notifier, poll_interval=60)
