"""
ORM access strategy.
Works with mapped entities and a unit-of-work session; aggregations that the
entity API cannot express are written as Core selects over the mapped columns.
"""

import logging
from typing import Dict, Any, List, Optional

from sqlalchemy import func, insert, select
from sqlalchemy.orm import Session, joinedload, selectinload, sessionmaker

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
from .models import OrderItemRecord, OrderRecord, PaymentRecord, ProductRecord, UserRecord
from .sqlite import SqliteConnection
from ..config import Config

logger = logging.getLogger(__name__)

ALLOWED_SORT_FIELDS = {"id", "name", "email", "created_at"}


def _user(record: UserRecord) -> User:
    return User(id=record.id, email=record.email, name=record.name, created_at=record.created_at)


def _order(record: OrderRecord) -> Order:
    return Order(
        id=record.id,
        user_id=record.user_id,
        status=record.status,
        total=record.total,
        created_at=record.created_at,
    )


class OrmStrategy(AccessStrategy):
    """
    ORM strategy.

    Each operation opens a short-lived session; writes run inside
    ``session.begin()`` so the unit of work commits or rolls back as a whole.
    """

    name = "orm"
    display_name = "ORM (SQLAlchemy)"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self.db = SqliteConnection(
            self.config["path"],
            Config.get_data_size(self.config["data_size"]),
            row_factory=None,
        )
        self.engine = create_sqlite_engine(self.db)
        self.session_factory = sessionmaker(bind=self.engine)
        logger.info(f"OrmStrategy connected to {self.config['path']}")

    def _load_config(self) -> Dict[str, Any]:
        return Config.get_sqlite_config()

    def _validate_config(self) -> None:
        if not self.config.get("path"):
            raise StrategyConfigError("SQLITE_PATH is required")
        if self.config.get("data_size", "").upper() not in ("S", "M", "L"):
            raise StrategyConfigError(f"Invalid data size: {self.config.get('data_size')}")

    async def _in_session(self, fn):
        def work():
            with self.session_factory() as session:
                return fn(session)

        return await self.db.run(work)

    # -- Read: simple ---------------------------------------------------------

    async def find_user_by_id(self, user_id: int) -> Optional[User]:
        def fetch(session: Session):
            record = session.get(UserRecord, user_id)
            return _user(record) if record else None

        return await self._in_session(fetch)

    async def find_user_by_email(self, email: str) -> Optional[User]:
        def fetch(session: Session):
            record = session.scalars(select(UserRecord).filter_by(email=email)).first()
            return _user(record) if record else None

        return await self._in_session(fetch)

    async def list_users(
        self,
        filters: ListUsersFilters,
        sort: SortOptions,
        page: PageOptions,
    ) -> List[User]:
        stmt = select(UserRecord)
        if filters.created_after:
            stmt = stmt.where(UserRecord.created_at > filters.created_after)
        if filters.search:
            stmt = stmt.where(UserRecord.name.ilike(f"%{filters.search}%"))

        column = getattr(UserRecord, sort.field if sort.field in ALLOWED_SORT_FIELDS else "id")
        stmt = (
            stmt.order_by(column.desc() if sort.dir == "desc" else column.asc())
            .limit(page.limit)
            .offset(page.offset)
        )

        return await self._in_session(lambda session: [_user(r) for r in session.scalars(stmt)])

    # -- Read: joins / aggregation --------------------------------------------

    async def get_order_with_details(self, order_id: int) -> Optional[OrderWithDetails]:
        def fetch(session: Session):
            record = session.get(
                OrderRecord,
                order_id,
                options=[
                    joinedload(OrderRecord.user),
                    selectinload(OrderRecord.items).joinedload(OrderItemRecord.product),
                ],
            )
            if record is None:
                return None

            return OrderWithDetails(
                order=_order(record),
                user={"id": record.user.id, "email": record.user.email, "name": record.user.name},
                items=[
                    OrderItem(
                        id=item.id,
                        order_id=item.order_id,
                        product_id=item.product_id,
                        quantity=item.quantity,
                        unit_price=item.unit_price,
                        product_name=item.product.name,
                    )
                    for item in record.items
                ],
            )

        return await self._in_session(fetch)

    async def get_user_order_totals(self, limit: int = 20) -> List[UserOrderTotal]:
        total_spent = func.coalesce(func.sum(OrderRecord.total), 0).label("total_spent")
        stmt = (
            select(
                UserRecord.id.label("user_id"),
                UserRecord.name.label("user_name"),
                func.count(OrderRecord.id).label("order_count"),
                total_spent,
            )
            .outerjoin(UserRecord.orders)
            .group_by(UserRecord.id, UserRecord.name)
            .order_by(total_spent.desc())
            .limit(limit)
        )

        rows = await self._in_session(lambda session: session.execute(stmt).mappings().all())
        return [UserOrderTotal(**row) for row in rows]

    # -- Read: top-N and batch ------------------------------------------------

    async def get_last_order_per_user(self, limit: int = 20) -> List[LastOrderPerUser]:
        ranked = select(
            OrderRecord.id.label("last_order_id"),
            OrderRecord.user_id,
            OrderRecord.total.label("last_order_total"),
            OrderRecord.created_at.label("last_order_at"),
            func.row_number()
            .over(partition_by=OrderRecord.user_id, order_by=OrderRecord.created_at.desc())
            .label("rn"),
        ).subquery("ranked")

        stmt = (
            select(
                ranked.c.user_id,
                UserRecord.email.label("user_email"),
                ranked.c.last_order_id,
                ranked.c.last_order_total,
                ranked.c.last_order_at,
            )
            .join_from(ranked, UserRecord, UserRecord.id == ranked.c.user_id)
            .where(ranked.c.rn == 1)
            .order_by(ranked.c.last_order_at.desc())
            .limit(limit)
        )

        rows = await self._in_session(lambda session: session.execute(stmt).mappings().all())
        return [LastOrderPerUser(**row) for row in rows]

    async def batch_get_users(self, ids: List[int]) -> List[User]:
        if not ids:
            return []

        stmt = select(UserRecord).where(UserRecord.id.in_(ids))
        return await self._in_session(lambda session: [_user(r) for r in session.scalars(stmt)])

    # -- Write ----------------------------------------------------------------

    async def insert_one_user(self, data: NewUser) -> User:
        def write(session: Session):
            record = UserRecord(email=data.email, name=data.name)
            with session.begin():
                session.add(record)
            # expired on commit; reloads created_at from the row
            return _user(record)

        return await self._in_session(write)

    async def insert_many_products(self, rows: List[NewProduct]) -> int:
        if not rows:
            return 0

        stmt = insert(ProductRecord.__table__).values([
            {"category_id": r.category_id, "name": r.name, "price": r.price, "stock": r.stock}
            for r in rows
        ])

        def write(session: Session):
            with session.begin():
                return session.execute(stmt).rowcount

        return await self._in_session(write)

    async def create_order_with_items(self, data: NewOrderInput) -> Order:
        def write(session: Session):
            record = OrderRecord(
                user_id=data.user_id,
                status="pending",
                total=data.payment_amount,
                items=[
                    OrderItemRecord(product_id=it.product_id, quantity=it.quantity, unit_price=it.unit_price)
                    for it in data.items
                ],
                payment=PaymentRecord(amount=data.payment_amount, status="pending"),
            )
            with session.begin():
                session.add(record)
            return _order(record)

        return await self._in_session(write)

    # -- Update / delete ------------------------------------------------------

    async def update_order_status(self, order_id: int, status: str) -> bool:
        def write(session: Session):
            with session.begin():
                record = session.get(OrderRecord, order_id)
                if record is None:
                    return False
                record.status = status
            return True

        return await self._in_session(write)

    async def delete_order(self, order_id: int) -> bool:
        def write(session: Session):
            with session.begin():
                record = session.get(OrderRecord, order_id)
                if record is None:
                    return False
                session.delete(record)
            return True

        return await self._in_session(write)

    # -- Lifecycle ------------------------------------------------------------

    async def close(self) -> None:
        if self.db.closed:
            return
        await self.db.run(self.engine.dispose)
        await self.db.close()
        logger.info("OrmStrategy closed")
