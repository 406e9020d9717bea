"""
Data-access-layer strategy.
Delegates every operation to a typed repository; callers never see SQL.
"""

import logging
from typing import Dict, Any, List, Optional

from .base import (
    AccessStrategy,
    LastOrderPerUser,
    ListUsersFilters,
    NewOrderInput,
    NewProduct,
    NewUser,
    Order,
    OrderWithDetails,
    PageOptions,
    SortOptions,
    StrategyConfigError,
    User,
    UserOrderTotal,
)
from .repositories import OrderRepository, ProductRepository, UserRepository
from .sqlite import SqliteConnection
from ..config import Config

logger = logging.getLogger(__name__)


class DataAccessLayerStrategy(AccessStrategy):
    """Repository-pattern strategy over a private SQLite connection."""

    name = "dal"
    display_name = "Data Access Layer"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self.db = SqliteConnection(
            self.config["path"],
            Config.get_data_size(self.config["data_size"]),
        )
        self.users = UserRepository(self.db)
        self.orders = OrderRepository(self.db)
        self.products = ProductRepository(self.db)
        logger.info(f"DataAccessLayerStrategy connected to {self.config['path']}")

    def _load_config(self) -> Dict[str, Any]:
        return Config.get_sqlite_config()

    def _validate_config(self) -> None:
        if not self.config.get("path"):
            raise StrategyConfigError("SQLITE_PATH is required")
        if self.config.get("data_size", "").upper() not in ("S", "M", "L"):
            raise StrategyConfigError(f"Invalid data size: {self.config.get('data_size')}")

    async def find_user_by_id(self, user_id: int) -> Optional[User]:
        return await self.users.find_by_id(user_id)

    async def find_user_by_email(self, email: str) -> Optional[User]:
        return await self.users.find_by_email(email)

    async def list_users(
        self,
        filters: ListUsersFilters,
        sort: SortOptions,
        page: PageOptions,
    ) -> List[User]:
        return await self.users.list(filters, sort, page)

    async def get_order_with_details(self, order_id: int) -> Optional[OrderWithDetails]:
        return await self.orders.find_with_details(order_id)

    async def get_user_order_totals(self, limit: int = 20) -> List[UserOrderTotal]:
        return await self.orders.get_user_order_totals(limit)

    async def get_last_order_per_user(self, limit: int = 20) -> List[LastOrderPerUser]:
        return await self.orders.get_last_order_per_user(limit)

    async def batch_get_users(self, ids: List[int]) -> List[User]:
        return await self.users.batch_get(ids)

    async def insert_one_user(self, data: NewUser) -> User:
        return await self.users.insert(data)

    async def insert_many_products(self, rows: List[NewProduct]) -> int:
        return await self.products.insert_many(rows)

    async def create_order_with_items(self, data: NewOrderInput) -> Order:
        return await self.orders.create_with_items(data)

    async def update_order_status(self, order_id: int, status: str) -> bool:
        return await self.orders.update_status(order_id, status)

    async def delete_order(self, order_id: int) -> bool:
        return await self.orders.delete(order_id)

    async def close(self) -> None:
        await self.db.close()
        logger.info("DataAccessLayerStrategy closed")
