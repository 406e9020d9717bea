"""
Typed repositories used by the data-access-layer strategy.
Each repository hides its SQL behind entity-level methods.
"""

import sqlite3
from typing import Any, Dict, List, Optional, Sequence

from .base import (
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
    User,
    UserOrderTotal,
)
from .sqlite import SqliteConnection


class _Repository:
    table: str = ""
    columns: Sequence[str] = ()

    def __init__(self, db: SqliteConnection):
        self.db = db

    def _select(self) -> str:
        return f"SELECT {', '.join(self.columns)} FROM {self.table}"

    def _insert(self, conn: sqlite3.Connection, values: Dict[str, Any]) -> int:
        names = ", ".join(values)
        marks = ", ".join("?" * len(values))
        cursor = conn.execute(
            f"INSERT INTO {self.table} ({names}) VALUES ({marks})",
            list(values.values()),
        )
        return cursor.lastrowid

    def _insert_many(self, conn: sqlite3.Connection, rows: List[Dict[str, Any]]) -> int:
        names = list(rows[0])
        group = "(" + ", ".join("?" * len(names)) + ")"
        cursor = conn.execute(
            f"INSERT INTO {self.table} ({', '.join(names)}) VALUES "
            + ", ".join([group] * len(rows)),
            [row[name] for row in rows for name in names],
        )
        return cursor.rowcount


class UserRepository(_Repository):
    table = "users"
    columns = ("id", "email", "name", "created_at")
    sortable = {"id", "name", "email", "created_at"}

    async def find_by_id(self, user_id: int) -> Optional[User]:
        return await self._first("id = ?", user_id)

    async def find_by_email(self, email: str) -> Optional[User]:
        return await self._first("email = ?", email)

    async def _first(self, clause: str, value: Any) -> Optional[User]:
        sql = f"{self._select()} WHERE {clause} LIMIT 1"

        def fetch(conn: sqlite3.Connection):
            return conn.execute(sql, (value,)).fetchone()

        row = await self.db.call(fetch)
        return User(**dict(row)) if row else None

    async def list(
        self,
        filters: ListUsersFilters,
        sort: SortOptions,
        page: PageOptions,
    ) -> List[User]:
        clauses, params = [], []
        if filters.created_after:
            clauses.append("created_at > ?")
            params.append(filters.created_after)
        if filters.search:
            clauses.append("name LIKE ?")
            params.append(f"%{filters.search}%")

        sort_col = sort.field if sort.field in self.sortable else "id"
        sql = self._select()
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += f" ORDER BY {sort_col} {'DESC' if sort.dir == 'desc' else 'ASC'} LIMIT ? OFFSET ?"
        params.extend([page.limit, page.offset])

        def fetch(conn: sqlite3.Connection):
            return conn.execute(sql, params).fetchall()

        return [User(**dict(row)) for row in await self.db.call(fetch)]

    async def batch_get(self, ids: List[int]) -> List[User]:
        if not ids:
            return []
        sql = f"{self._select()} WHERE id IN ({', '.join('?' * len(ids))})"

        def fetch(conn: sqlite3.Connection):
            return conn.execute(sql, list(ids)).fetchall()

        return [User(**dict(row)) for row in await self.db.call(fetch)]

    async def insert(self, data: NewUser) -> User:
        def write(conn: sqlite3.Connection):
            with conn:
                user_id = self._insert(conn, {"email": data.email, "name": data.name})
            return conn.execute(f"{self._select()} WHERE id = ?", (user_id,)).fetchone()

        return User(**dict(await self.db.call(write)))


class ProductRepository(_Repository):
    table = "products"
    columns = ("id", "category_id", "name", "price", "stock", "created_at")

    async def insert_many(self, rows: List[NewProduct]) -> int:
        if not rows:
            return 0
        values = [
            {"category_id": r.category_id, "name": r.name, "price": r.price, "stock": r.stock}
            for r in rows
        ]

        def write(conn: sqlite3.Connection):
            with conn:
                return self._insert_many(conn, values)

        return await self.db.call(write)


class OrderRepository(_Repository):
    table = "orders"
    columns = ("id", "user_id", "status", "total", "created_at")

    async def find_with_details(self, order_id: int) -> Optional[OrderWithDetails]:
        def fetch(conn: sqlite3.Connection):
            order = conn.execute(f"{self._select()} WHERE id = ?", (order_id,)).fetchone()
            if order is None:
                return None, None, []
            user = conn.execute(
                "SELECT id, email, name FROM users WHERE id = ?", (order["user_id"],)
            ).fetchone()
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
            return order, user, items

        order, user, items = await self.db.call(fetch)
        if order is None:
            return None
        return OrderWithDetails(
            order=Order(**dict(order)),
            user=dict(user) if user else {},
            items=[OrderItem(**dict(row)) for row in items],
        )

    async def get_user_order_totals(self, limit: int) -> List[UserOrderTotal]:
        def fetch(conn: sqlite3.Connection):
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

        return [UserOrderTotal(**dict(row)) for row in await self.db.call(fetch)]

    async def get_last_order_per_user(self, limit: int) -> List[LastOrderPerUser]:
        def fetch(conn: sqlite3.Connection):
            return conn.execute(
                """
                SELECT o.user_id, u.email AS user_email,
                       o.id AS last_order_id, o.total AS last_order_total,
                       o.created_at AS last_order_at
                FROM orders o
                JOIN users u ON u.id = o.user_id
                WHERE o.id = (
                  SELECT o2.id FROM orders o2
                  WHERE o2.user_id = o.user_id
                  ORDER BY o2.created_at DESC
                  LIMIT 1
                )
                ORDER BY o.created_at DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()

        return [LastOrderPerUser(**dict(row)) for row in await self.db.call(fetch)]

    async def create_with_items(self, data: NewOrderInput) -> Order:
        def write(conn: sqlite3.Connection):
            with conn:
                order_id = self._insert(
                    conn,
                    {"user_id": data.user_id, "status": "pending", "total": data.payment_amount},
                )
                if data.items:
                    conn.execute(
                        "INSERT INTO order_items (order_id, product_id, quantity, unit_price) VALUES "
                        + ", ".join(["(?, ?, ?, ?)"] * len(data.items)),
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
            return conn.execute(f"{self._select()} WHERE id = ?", (order_id,)).fetchone()

        return Order(**dict(await self.db.call(write)))

    async def update_status(self, order_id: int, status: str) -> bool:
        def write(conn: sqlite3.Connection):
            with conn:
                return conn.execute(
                    "UPDATE orders SET status = ? WHERE id = ?", (status, order_id)
                ).rowcount

        return await self.db.call(write) > 0

    async def delete(self, order_id: int) -> bool:
        def write(conn: sqlite3.Connection):
            with conn:
                return conn.execute("DELETE FROM orders WHERE id = ?", (order_id,)).rowcount

        return await self.db.call(write) > 0
