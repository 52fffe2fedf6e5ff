from pathlib import Path

import pytest
import pytest_asyncio

from cm_orders.store.orders import OrderStore
from cm_orders.store.products import ProductStore


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "cardmarket.db"


@pytest_asyncio.fixture
async def order_store(db_path: Path) -> OrderStore:
    store = OrderStore(db_path)
    await store.initialize()
    return store


@pytest_asyncio.fixture
async def product_store(db_path: Path) -> ProductStore:
    store = ProductStore(db_path)
    await store.initialize()
    return store
