"""
Query-builder access strategy.
Statements are composed with SQLAlchemy Core expressions instead of SQL text.
"""

import logging
from typing import Dict, Any, List, Optional

from sqlalchemy import func, insert, select, update, delete
from sqlalchemy.engine import Connection

from .alchemy import create_sqlite_engine
from .base import (
    AccessStrategy,
    LastOrderPerUser,
    ListUsersFilters,
    NewOrderInput,
    NewProduct,
    NewUser,
    Order,
    OrderItem,
    OrderWithDetails,
    PageOptions,
    SortOptions,
    StrategyConfigError,
    User,
    UserOrderTotal,
)
from .sqlite import SqliteConnection
from .tables import (
    SORTABLE_USER_COLUMNS,
    USER_COLUMNS,
    order_items,
    orders,
    payments,
    products,
    users,
)
from ..config import Config

logger = logging.getLogger(__name__)


def _user(row) -> Optional[User]:
    return User(**row) if row is not None else None


class QueryBuilderStrategy(AccessStrategy):
    """
    Query-builder strategy.

    Every statement is built with SQLAlchemy Core and executed on a
    connection checked out from an engine wrapping the private SQLite
    connection.
    """

    name = "qb"
    display_name = "Query Builder (SQLAlchemy Core)"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self.db = SqliteConnection(
            self.config["path"],
            Config.get_data_size(self.config["data_size"]),
            row_factory=None,
        )
        self.engine = create_sqlite_engine(self.db)
        logger.info(f"QueryBuilderStrategy connected to {self.config['path']}")

    def _load_config(self) -> Dict[str, Any]:
        return Config.get_sqlite_config()

    def _validate_config(self) -> None:
        if not self.config.get("path"):
            raise StrategyConfigError("SQLITE_PATH is required")
        if self.config.get("data_size", "").upper() not in ("S", "M", "L"):
            raise StrategyConfigError(f"Invalid data size: {self.config.get('data_size')}")

    async def _read(self, fn):
        def work():
            with self.engine.connect() as conn:
                return fn(conn)

        return await self.db.run(work)

    async def _write(self, fn):
        def work():
            with self.engine.begin() as conn:
                return fn(conn)

        return await self.db.run(work)

    # ==========================================================================
    # Read - simple
    # ==========================================================================

    async def find_user_by_id(self, user_id: int) -> Optional[User]:
        stmt = select(*USER_COLUMNS).where(users.c.id == user_id)
        return _user(await self._read(lambda conn: conn.execute(stmt).mappings().first()))

    async def find_user_by_email(self, email: str) -> Optional[User]:
        stmt = select(*USER_COLUMNS).where(users.c.email == email)
        return _user(await self._read(lambda conn: conn.execute(stmt).mappings().first()))

    async def list_users(
        self,
        filters: ListUsersFilters,
        sort: SortOptions,
        page: PageOptions,
    ) -> List[User]:
        stmt = select(*USER_COLUMNS)
        if filters.created_after:
            stmt = stmt.where(users.c.created_at > filters.created_after)
        if filters.search:
            stmt = stmt.where(users.c.name.ilike(f"%{filters.search}%"))

        column = SORTABLE_USER_COLUMNS.get(sort.field, users.c.id)
        stmt = (
            stmt.order_by(column.desc() if sort.dir == "desc" else column.asc())
            .limit(page.limit)
            .offset(page.offset)
        )

        rows = await self._read(lambda conn: conn.execute(stmt).mappings().all())
        return [User(**row) for row in rows]

    # ==========================================================================
    # Read - medium
    # ==========================================================================

    async def get_order_with_details(self, order_id: int) -> Optional[OrderWithDetails]:
        head_stmt = (
            select(
                orders,
                users.c.email.label("user_email"),
                users.c.name.label("user_name"),
            )
            .join_from(orders, users, users.c.id == orders.c.user_id)
            .where(orders.c.id == order_id)
        )
        items_stmt = (
            select(order_items, products.c.name.label("product_name"))
            .join_from(order_items, products, products.c.id == order_items.c.product_id)
            .where(order_items.c.order_id == order_id)
        )

        def fetch(conn: Connection):
            head = conn.execute(head_stmt).mappings().first()
            if head is None:
                return None, []
            return head, conn.execute(items_stmt).mappings().all()

        head, items = await self._read(fetch)
        if head is None:
            return None

        return OrderWithDetails(
            order=Order(
                id=head["id"],
                user_id=head["user_id"],
                status=head["status"],
                total=head["total"],
                created_at=head["created_at"],
            ),
            user={"id": head["user_id"], "email": head["user_email"], "name": head["user_name"]},
            items=[OrderItem(**row) for row in items],
        )

    async def get_user_order_totals(self, limit: int = 20) -> List[UserOrderTotal]:
        total_spent = func.coalesce(func.sum(orders.c.total), 0).label("total_spent")
        stmt = (
            select(
                users.c.id.label("user_id"),
                users.c.name.label("user_name"),
                func.count(orders.c.id).label("order_count"),
                total_spent,
            )
            .select_from(users.outerjoin(orders, orders.c.user_id == users.c.id))
            .group_by(users.c.id, users.c.name)
            .order_by(total_spent.desc())
            .limit(limit)
        )

        rows = await self._read(lambda conn: conn.execute(stmt).mappings().all())
        return [UserOrderTotal(**row) for row in rows]

    # ==========================================================================
    # Read - heavy
    # ==========================================================================

    async def get_last_order_per_user(self, limit: int = 20) -> List[LastOrderPerUser]:
        ranked = select(
            orders.c.id.label("last_order_id"),
            orders.c.user_id,
            orders.c.total.label("last_order_total"),
            orders.c.created_at.label("last_order_at"),
            func.row_number()
            .over(partition_by=orders.c.user_id, order_by=orders.c.created_at.desc())
            .label("rn"),
        ).subquery("ranked")

        stmt = (
            select(
                ranked.c.user_id,
                users.c.email.label("user_email"),
                ranked.c.last_order_id,
                ranked.c.last_order_total,
                ranked.c.last_order_at,
            )
            .join_from(ranked, users, users.c.id == ranked.c.user_id)
            .where(ranked.c.rn == 1)
            .order_by(ranked.c.last_order_at.desc())
            .limit(limit)
        )

        rows = await self._read(lambda conn: conn.execute(stmt).mappings().all())
        return [LastOrderPerUser(**row) for row in rows]

    async def batch_get_users(self, ids: List[int]) -> List[User]:
        if not ids:
            return []

        stmt = select(*USER_COLUMNS).where(users.c.id.in_(ids))
        rows = await self._read(lambda conn: conn.execute(stmt).mappings().all())
        return [User(**row) for row in rows]

    # ==========================================================================
    # Write
    # ==========================================================================

    async def insert_one_user(self, data: NewUser) -> User:
        def write(conn: Connection):
            result = conn.execute(insert(users).values(email=data.email, name=data.name))
            user_id = result.inserted_primary_key[0]
            return conn.execute(select(*USER_COLUMNS).where(users.c.id == user_id)).mappings().one()

        return User(**await self._write(write))

    async def insert_many_products(self, rows: List[NewProduct]) -> int:
        if not rows:
            return 0

        stmt = insert(products).values([
            {"category_id": r.category_id, "name": r.name, "price": r.price, "stock": r.stock}
            for r in rows
        ])
        return await self._write(lambda conn: conn.execute(stmt).rowcount)

    async def create_order_with_items(self, data: NewOrderInput) -> Order:
        def write(conn: Connection):
            result = conn.execute(
                insert(orders).values(user_id=data.user_id, status="pending", total=data.payment_amount)
            )
            order_id = result.inserted_primary_key[0]

            if data.items:
                conn.execute(insert(order_items).values([
                    {
                        "order_id": order_id,
                        "product_id": it.product_id,
                        "quantity": it.quantity,
                        "unit_price": it.unit_price,
                    }
                    for it in data.items
                ]))

            conn.execute(
                insert(payments).values(order_id=order_id, amount=data.payment_amount, status="pending")
            )
            return conn.execute(select(orders).where(orders.c.id == order_id)).mappings().one()

        return Order(**await self._write(write))

    # ==========================================================================
    # Update / Delete
    # ==========================================================================

    async def update_order_status(self, order_id: int, status: str) -> bool:
        stmt = update(orders).where(orders.c.id == order_id).values(status=status)
        return await self._write(lambda conn: conn.execute(stmt).rowcount) > 0

    async def delete_order(self, order_id: int) -> bool:
        stmt = delete(orders).where(orders.c.id == order_id)
        return await self._write(lambda conn: conn.execute(stmt).rowcount) > 0

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    async def close(self) -> None:
        if self.db.closed:
            return
        await self.db.run(self.engine.dispose)
        await self.db.close()
        logger.info("QueryBuilderStrategy closed")
