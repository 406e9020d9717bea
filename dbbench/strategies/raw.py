"""
Raw SQL access strategy.
Every operation is a hand-written statement run through the DB-API cursor.
"""

import logging
import sqlite3
from typing import Dict, Any, List, Optional

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
from ..config import Config

logger = logging.getLogger(__name__)

ALLOWED_SORT_FIELDS = {"id", "name", "email", "created_at"}

USER_COLUMNS = "id, email, name, created_at"


def _user(row: Optional[sqlite3.Row]) -> Optional[User]:
    if row is None:
        return None
    return User(id=row["id"], email=row["email"], name=row["name"], created_at=row["created_at"])


def _order(row: sqlite3.Row) -> Order:
    return Order(
        id=row["id"],
        user_id=row["user_id"],
        status=row["status"],
        total=row["total"],
        created_at=row["created_at"],
    )


def _placeholders(count: int, width: int) -> str:
    group = "(" + ", ".join("?" * width) + ")"
    return ", ".join([group] * count)


class RawSqlStrategy(AccessStrategy):
    """
    Raw SQL strategy.

    Builds every query by hand, including dynamic WHERE clauses and
    multi-row VALUES lists, and manages the transaction explicitly.
    """

    name = "raw"
    display_name = "Raw SQL"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self.db = SqliteConnection(
            self.config["path"],
            Config.get_data_size(self.config["data_size"]),
        )
        logger.info(f"RawSqlStrategy connected to {self.config['path']}")

    def _load_config(self) -> Dict[str, Any]:
        """Load SQLite configuration."""
        return Config.get_sqlite_config()

    def _validate_config(self) -> None:
        """Validate required configuration."""
        if not self.config.get("path"):
            raise StrategyConfigError("SQLITE_PATH is required")
        if self.config.get("data_size", "").upper() not in ("S", "M", "L"):
            raise StrategyConfigError(f"Invalid data size: {self.config.get('data_size')}")

    # ==========================================================================
    # Read - simple
    # ==========================================================================

    async def find_user_by_id(self, user_id: int) -> Optional[User]:
        def query(conn: sqlite3.Connection):
            return conn.execute(
                f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (user_id,)
            ).fetchone()

        return _user(await self.db.call(query))

    async def find_user_by_email(self, email: str) -> Optional[User]:
        def query(conn: sqlite3.Connection):
            return conn.execute(
                f"SELECT {USER_COLUMNS} FROM users WHERE email = ?", (email,)
            ).fetchone()

        return _user(await self.db.call(query))

    async def list_users(
        self,
        filters: ListUsersFilters,
        sort: SortOptions,
        page: PageOptions,
    ) -> List[User]:
        conditions = []
        params: List[Any] = []

        if filters.created_after:
            conditions.append("created_at > ?")
            params.append(filters.created_after)
        if filters.search:
            # LIKE is case-insensitive for ASCII in SQLite
            conditions.append("name LIKE ?")
            params.append(f"%{filters.search}%")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        sort_col = sort.field if sort.field in ALLOWED_SORT_FIELDS else "id"
        sort_dir = "DESC" if sort.dir == "desc" else "ASC"
        params.extend([page.limit, page.offset])

        sql = (
            f"SELECT {USER_COLUMNS} FROM users {where} "
            f"ORDER BY {sort_col} {sort_dir} LIMIT ? OFFSET ?"
        )

        def query(conn: sqlite3.Connection):
            return conn.execute(sql, params).fetchall()

        return [_user(row) for row in await self.db.call(query)]

    # ==========================================================================
    # Read - medium
    # ==========================================================================

    async def get_order_with_details(self, order_id: int) -> Optional[OrderWithDetails]:
        def query(conn: sqlite3.Connection):
            head = conn.execute(
                """
                SELECT o.id, o.user_id, o.status, o.total, o.created_at,
                       u.id AS uid, u.email AS user_email, u.name AS user_name
                FROM orders o
                JOIN users u ON u.id = o.user_id
                WHERE o.id = ?
                """,
                (order_id,),
            ).fetchone()
            if head is None:
                return None, []
            items = conn.execute(
                """
                SELECT oi.id, oi.order_id, oi.product_id, oi.quantity, oi.unit_price,
                       p.name AS product_name
                FROM order_items oi
                JOIN products p ON p.id = oi.product_id
                WHERE oi.order_id = ?
                """,
                (order_id,),
            ).fetchall()
            return head, items

        head, items = await self.db.call(query)
        if head is None:
            return None

        return OrderWithDetails(
            order=_order(head),
            user={"id": head["uid"], "email": head["user_email"], "name": head["user_name"]},
            items=[OrderItem(**dict(row)) for row in items],
        )

    async def get_user_order_totals(self, limit: int = 20) -> List[UserOrderTotal]:
        def query(conn: sqlite3.Connection):
            return conn.execute(
                """
                SELECT u.id AS user_id, u.name AS user_name,
                       COUNT(o.id) AS order_count,
                       COALESCE(SUM(o.total), 0) AS total_spent
                FROM users u
                LEFT JOIN orders o ON o.user_id = u.id
                GROUP BY u.id, u.name
                ORDER BY total_spent DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()

        return [UserOrderTotal(**dict(row)) for row in await self.db.call(query)]

    # ==========================================================================
    # Read - heavy
    # ==========================================================================

    async def get_last_order_per_user(self, limit: int = 20) -> List[LastOrderPerUser]:
        def query(conn: sqlite3.Connection):
            return conn.execute(
                """
                WITH ranked AS (
                  SELECT o.id AS last_order_id,
                         o.user_id,
                         o.total AS last_order_total,
                         o.created_at AS last_order_at,
                         ROW_NUMBER() OVER (
                           PARTITION BY o.user_id ORDER BY o.created_at DESC
                         ) AS rn
                  FROM orders o
                )
                SELECT r.user_id, u.email AS user_email,
                       r.last_order_id, r.last_order_total, r.last_order_at
                FROM ranked r
                JOIN users u ON u.id = r.user_id
                WHERE r.rn = 1
                ORDER BY r.last_order_at DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()

        return [LastOrderPerUser(**dict(row)) for row in await self.db.call(query)]

    async def batch_get_users(self, ids: List[int]) -> List[User]:
        if not ids:
            return []

        marks = ", ".join("?" * len(ids))

        def query(conn: sqlite3.Connection):
            return conn.execute(
                f"SELECT {USER_COLUMNS} FROM users WHERE id IN ({marks})", list(ids)
            ).fetchall()

        return [_user(row) for row in await self.db.call(query)]

    # ==========================================================================
    # Write
    # ==========================================================================

    async def insert_one_user(self, data: NewUser) -> User:
        def query(conn: sqlite3.Connection):
            with conn:
                cursor = conn.execute(
                    "INSERT INTO users (email, name) VALUES (?, ?)",
                    (data.email, data.name),
                )
            return conn.execute(
                f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()

        return _user(await self.db.call(query))

    async def insert_many_products(self, rows: List[NewProduct]) -> int:
        if not rows:
            return 0

        sql = (
            "INSERT INTO products (category_id, name, price, stock) VALUES "
            + _placeholders(len(rows), 4)
        )
        params = [value for r in rows for value in (r.category_id, r.name, r.price, r.stock)]

        def query(conn: sqlite3.Connection):
            with conn:
                return conn.execute(sql, params).rowcount

        return await self.db.call(query)

    async def create_order_with_items(self, data: NewOrderInput) -> Order:
        def query(conn: sqlite3.Connection):
            # Commits on success, rolls back all three inserts on error
            with conn:
                cursor = conn.execute(
                    "INSERT INTO orders (user_id, status, total) VALUES (?, 'pending', ?)",
                    (data.user_id, data.payment_amount),
                )
                order_id = cursor.lastrowid

                if data.items:
                    conn.execute(
                        "INSERT INTO order_items (order_id, product_id, quantity, unit_price) VALUES "
                        + _placeholders(len(data.items), 4),
                        [
                            value
                            for it in data.items
                            for value in (order_id, it.product_id, it.quantity, it.unit_price)
                        ],
                    )

                conn.execute(
                    "INSERT INTO payments (order_id, amount, status) VALUES (?, ?, 'pending')",
                    (order_id, data.payment_amount),
                )
            return conn.execute(
                "SELECT id, user_id, status, total, created_at FROM orders WHERE id = ?",
                (order_id,),
            ).fetchone()

        return _order(await self.db.call(query))

    # ==========================================================================
    # Update / Delete
    # ==========================================================================

    async def update_order_status(self, order_id: int, status: str) -> bool:
        def query(conn: sqlite3.Connection):
            with conn:
                return conn.execute(
                    "UPDATE orders SET status = ? WHERE id = ?", (status, order_id)
                ).rowcount

        return await self.db.call(query) > 0

    async def delete_order(self, order_id: int) -> bool:
        def query(conn: sqlite3.Connection):
            with conn:
                return conn.execute("DELETE FROM orders WHERE id = ?", (order_id,)).rowcount

        return await self.db.call(query) > 0

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    async def close(self) -> None:
        await self.db.close()
        logger.info("RawSqlStrategy closed")
