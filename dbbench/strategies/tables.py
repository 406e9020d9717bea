"""
SQLAlchemy table metadata for the benchmark schema.
Mirrors SCHEMA_SQL in sqlite.py; the DDL itself is always run from there.
"""

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    text,
)

metadata = MetaData()

# TEXT timestamps come back as the same strings the sqlite3 strategies return
_now = text("CURRENT_TIMESTAMP")

categories = Table(
    "categories",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(100), nullable=False),
    Column("slug", String(100), nullable=False, unique=True),
)

products = Table(
    "products",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("category_id", Integer, ForeignKey("categories.id"), nullable=False),
    Column("name", String(200), nullable=False),
    Column("price", Numeric(10, 2, asdecimal=False), nullable=False),
    Column("stock", Integer, nullable=False, server_default=text("0")),
    Column("created_at", String, nullable=False, server_default=_now),
)

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("name", String(200), nullable=False),
    Column("created_at", String, nullable=False, server_default=_now),
)

orders = Table(
    "orders",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("status", String(30), nullable=False, server_default=text("'pending'")),
    Column("total", Numeric(12, 2, asdecimal=False), nullable=False, server_default=text("0")),
    Column("created_at", String, nullable=False, server_default=_now),
)

order_items = Table(
    "order_items",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("order_id", Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
    Column("product_id", Integer, ForeignKey("products.id"), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("unit_price", Numeric(10, 2, asdecimal=False), nullable=False),
)

payments = Table(
    "payments",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("order_id", Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, unique=True),
    Column("amount", Numeric(12, 2, asdecimal=False), nullable=False),
    Column("status", String(30), nullable=False, server_default=text("'pending'")),
    Column("paid_at", String),
)

USER_COLUMNS = (users.c.id, users.c.email, users.c.name, users.c.created_at)

SORTABLE_USER_COLUMNS = {
    "id": users.c.id,
    "name": users.c.name,
    "email": users.c.email,
    "created_at": users.c.created_at,
}
