import asyncio
from typing import Any, Dict, List, Optional

import pytest

from dbbench.benchmark.cases import BenchCase, CaseContext, CaseRegistry
from dbbench.strategies.base import AccessStrategy


class FakeStrategy(AccessStrategy):
    """In-memory strategy recording every call; never touches a database."""

    name = "fake"
    display_name = "Fake"

    def __init__(self, config: Optional[Dict[str, Any]] = None, fail: bool = False, delay: float = 0.0):
        super().__init__(config)
        self.fail = fail
        self.delay = delay
        self.calls: List[str] = []
        self.close_count = 0

    def _load_config(self) -> Dict[str, Any]:
        return {}

    async def _op(self, op: str, value: Any = None) -> Any:
        self.calls.append(op)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError(f"{op} failed")
        return value

    async def find_user_by_id(self, user_id):
        return await self._op("find_user_by_id", user_id)

    async def find_user_by_email(self, email):
        return await self._op("find_user_by_email")

    async def list_users(self, filters, sort, page):
        return await self._op("list_users", [])

    async def get_order_with_details(self, order_id):
        return await self._op("get_order_with_details")

    async def get_user_order_totals(self, limit=20):
        return await self._op("get_user_order_totals", [])

    async def get_last_order_per_user(self, limit=20):
        return await self._op("get_last_order_per_user", [])

    async def batch_get_users(self, ids):
        return await self._op("batch_get_users", [])

    async def insert_one_user(self, data):
        return await self._op("insert_one_user")

    async def insert_many_products(self, rows):
        return await self._op("insert_many_products", len(rows))

    async def create_order_with_items(self, data):
        return await self._op("create_order_with_items")

    async def update_order_status(self, order_id, status):
        return await self._op("update_order_status", True)

    async def delete_order(self, order_id):
        return await self._op("delete_order", True)

    async def close(self) -> None:
        self.close_count += 1


async def ping(strategy: AccessStrategy, ctx: CaseContext):
    return await strategy.find_user_by_id(1)


@pytest.fixture
def fake_strategy() -> FakeStrategy:
    return FakeStrategy()


@pytest.fixture
def failing_strategy() -> FakeStrategy:
    return FakeStrategy(fail=True)


@pytest.fixture
def ping_case() -> BenchCase:
    return BenchCase(name="ping", description="Returns immediately", run=ping)


@pytest.fixture
def registry(ping_case: BenchCase) -> CaseRegistry:
    return CaseRegistry([ping_case])


@pytest.fixture
def sqlite_config() -> Dict[str, Any]:
    return {"path": ":memory:", "data_size": "S"}
