"""
SQLite plumbing shared by the bundled strategies: the fixed schema, a
deterministic seed and an awaitable connection bound to one worker thread.
"""

import asyncio
import logging
import random
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from .base import StrategyClosedError

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS categories (
  id   INTEGER PRIMARY KEY AUTOINCREMENT,
  name VARCHAR(100) NOT NULL,
  slug VARCHAR(100) NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS products (
  id          INTEGER PRIMARY KEY AUTOINCREMENT,
  category_id INTEGER      NOT NULL REFERENCES categories(id),
  name        VARCHAR(200) NOT NULL,
  price       NUMERIC(10, 2) NOT NULL,
  stock       INTEGER      NOT NULL DEFAULT 0,
  created_at  TEXT         NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_products_category ON products(category_id);

CREATE TABLE IF NOT EXISTS users (
  id         INTEGER PRIMARY KEY AUTOINCREMENT,
  email      VARCHAR(255) NOT NULL UNIQUE,
  name       VARCHAR(200) NOT NULL,
  created_at TEXT         NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_users_email      ON users(email);
CREATE INDEX IF NOT EXISTS idx_users_created_at ON users(created_at);

CREATE TABLE IF NOT EXISTS orders (
  id         INTEGER PRIMARY KEY AUTOINCREMENT,
  user_id    INTEGER      NOT NULL REFERENCES users(id),
  status     VARCHAR(30)  NOT NULL DEFAULT 'pending',
  total      NUMERIC(12, 2) NOT NULL DEFAULT 0,
  created_at TEXT         NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_orders_user_id    ON orders(user_id);
CREATE INDEX IF NOT EXISTS idx_orders_status     ON orders(status);
CREATE INDEX IF NOT EXISTS idx_orders_created_at ON orders(created_at);

CREATE TABLE IF NOT EXISTS order_items (
  id         INTEGER PRIMARY KEY AUTOINCREMENT,
  order_id   INTEGER        NOT NULL REFERENCES orders(id) ON DELETE CASCADE,
  product_id INTEGER        NOT NULL REFERENCES products(id),
  quantity   INTEGER        NOT NULL,
  unit_price NUMERIC(10, 2) NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_order_items_order_id ON order_items(order_id);

CREATE TABLE IF NOT EXISTS payments (
  id       INTEGER PRIMARY KEY AUTOINCREMENT,
  order_id INTEGER        NOT NULL UNIQUE REFERENCES orders(id) ON DELETE CASCADE,
  amount   NUMERIC(12, 2) NOT NULL,
  status   VARCHAR(30)    NOT NULL DEFAULT 'pending',
  paid_at  TEXT
);
"""

CATEGORY_NAMES = [
    "Electronics", "Books", "Clothing", "Home & Garden",
    "Sports", "Toys", "Food", "Beauty",
]

FIRST_NAMES = [
    "Anna", "Brian", "Chen", "Diana", "Ethan", "Fatima", "Hans", "Ivan",
    "Jonas", "Karen", "Lena", "Marco", "Nadia", "Oscar", "Priya", "Sofia",
]

LAST_NAMES = [
    "Andersen", "Brennan", "Costa", "Duran", "Evans", "Fischer", "Grant",
    "Hansen", "Ivanova", "Jordan", "Kowalski", "Moreau", "Novak", "Tanaka",
]

PRODUCT_WORDS = [
    "Ergonomic", "Rustic", "Sleek", "Compact", "Deluxe", "Handmade",
    "Chair", "Lamp", "Keyboard", "Bottle", "Jacket", "Novel", "Ball",
]

ORDER_STATUSES = ["pending", "paid", "shipped", "delivered", "cancelled"]

SEED = 42


def create_schema(conn: sqlite3.Connection) -> None:
    """Create every table and index if missing."""
    conn.executescript(SCHEMA_SQL)


def _slugify(name: str) -> str:
    slug = "".join(ch if ch.isalnum() else "-" for ch in name.lower())
    while "--" in slug:
        slug = slug.replace("--", "-")
    return slug.strip("-")


def seed_database(conn: sqlite3.Connection, size: Dict[str, int], seed: int = SEED) -> int:
    """
    Populate an empty database with deterministic data.

    Args:
        conn: Open connection with the schema already created
        size: Seed volumes (users, products, orders_per_user)
        seed: Random seed

    Returns:
        Number of orders created
    """
    rng = random.Random(seed)
    base_time = datetime(2024, 1, 1)

    with conn:
        conn.executemany(
            "INSERT INTO categories (name, slug) VALUES (?, ?)",
            [(name, _slugify(name)) for name in CATEGORY_NAMES],
        )
        category_count = len(CATEGORY_NAMES)

        conn.executemany(
            "INSERT INTO products (category_id, name, price, stock) VALUES (?, ?, ?, ?)",
            [
                (
                    rng.randint(1, category_count),
                    f"{rng.choice(PRODUCT_WORDS)} {rng.choice(PRODUCT_WORDS)} {i}",
                    round(rng.uniform(1, 500), 2),
                    rng.randint(0, 1000),
                )
                for i in range(1, size["products"] + 1)
            ],
        )

        conn.executemany(
            "INSERT INTO users (email, name, created_at) VALUES (?, ?, ?)",
            [
                (
                    f"user_{i}@example.com",
                    f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}",
                    (base_time + timedelta(minutes=i)).isoformat(sep=" "),
                )
                for i in range(1, size["users"] + 1)
            ],
        )

        order_id = 0
        orders, items, payments = [], [], []
        for user_id in range(1, size["users"] + 1):
            for _ in range(rng.randint(1, size["orders_per_user"] * 2)):
                order_id += 1
                lines = [
                    (
                        order_id,
                        rng.randint(1, size["products"]),
                        rng.randint(1, 10),
                        round(rng.uniform(1, 200), 2),
                    )
                    for _ in range(rng.randint(1, 5))
                ]
                total = round(sum(qty * price for _, _, qty, price in lines), 2)
                status = rng.choice(ORDER_STATUSES)
                created_at = base_time + timedelta(minutes=user_id, seconds=order_id)
                orders.append((order_id, user_id, status, total, created_at.isoformat(sep=" ")))
                items.extend(lines)

                if status == "cancelled":
                    pay_status, paid_at = "failed", None
                elif status == "pending":
                    pay_status, paid_at = "pending", None
                else:
                    pay_status, paid_at = "completed", created_at.isoformat(sep=" ")
                payments.append((order_id, total, pay_status, paid_at))

        conn.executemany(
            "INSERT INTO orders (id, user_id, status, total, created_at) VALUES (?, ?, ?, ?, ?)",
            orders,
        )
        conn.executemany(
            "INSERT INTO order_items (order_id, product_id, quantity, unit_price) VALUES (?, ?, ?, ?)",
            items,
        )
        conn.executemany(
            "INSERT INTO payments (order_id, amount, status, paid_at) VALUES (?, ?, ?, ?)",
            payments,
        )

    logger.info(f"Seeded users={size['users']} products={size['products']} orders={order_id}")
    return order_id


def _open_connection(
    path: str,
    size: Dict[str, int],
    row_factory: Optional[Callable[..., Any]] = sqlite3.Row,
) -> sqlite3.Connection:
    conn = sqlite3.connect(path)
    conn.row_factory = row_factory
    conn.execute("PRAGMA foreign_keys = ON")
    create_schema(conn)

    (user_count,) = conn.execute("SELECT COUNT(*) FROM users").fetchone()
    if user_count == 0:
        seed_database(conn, size)
    return conn


class SqliteConnection:
    """
    A private SQLite connection owned by one strategy instance.

    sqlite3 connections are bound to the thread that opened them, so the
    connection lives on a single-worker executor and every call is shipped
    there with ``run_in_executor``. Callers ``await`` each operation like any
    other network-backed driver.

    Example:
        db = SqliteConnection(":memory:", Config.get_data_size("S"))
        row = await db.call(lambda conn: conn.execute("SELECT 1").fetchone())
        await db.close()
    """

    def __init__(
        self,
        path: str,
        size: Dict[str, int],
        row_factory: Optional[Callable[..., Any]] = sqlite3.Row,
    ):
        """
        Open (and seed if empty) the database on a dedicated worker thread.

        Args:
            path: Database file or ``:memory:``
            size: Seed volumes used when the database has no users
            row_factory: sqlite3 row factory, None for plain tuples
        """
        self.path = path
        self._executor: Optional[ThreadPoolExecutor] = ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix="dbbench-sqlite",
        )
        try:
            self._conn: Optional[sqlite3.Connection] = self._executor.submit(
                _open_connection, path, size, row_factory
            ).result()
        except Exception:
            self._executor.shutdown(wait=True)
            self._executor = None
            raise

    @property
    def closed(self) -> bool:
        return self._conn is None

    def dbapi_connection(self) -> sqlite3.Connection:
        """The underlying connection; only usable from the worker thread."""
        if self._conn is None:
            raise StrategyClosedError(f"Connection to {self.path} is closed")
        return self._conn

    async def run(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Run ``fn(*args)`` on the connection thread and await it."""
        if self._conn is None or self._executor is None:
            raise StrategyClosedError(f"Connection to {self.path} is closed")

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn, *args)

    async def call(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Run ``fn(conn, *args)`` on the connection thread and await it."""
        return await self.run(fn, self._conn, *args)

    async def close(self) -> None:
        """Close the connection and stop its worker thread. Idempotent."""
        if self._conn is None or self._executor is None:
            return

        conn, executor = self._conn, self._executor
        self._conn = None
        self._executor = None

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(executor, conn.close)
        finally:
            executor.shutdown(wait=True)
