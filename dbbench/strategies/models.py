"""
ORM mapped classes over the benchmark tables.
"""

from typing import List, Optional

from sqlalchemy.orm import DeclarativeBase, Mapped, relationship

from . import tables


class Base(DeclarativeBase):
    metadata = tables.metadata


class CategoryRecord(Base):
    __table__ = tables.categories


class ProductRecord(Base):
    __table__ = tables.products

    category: Mapped[CategoryRecord] = relationship()


class UserRecord(Base):
    __table__ = tables.users

    orders: Mapped[List["OrderRecord"]] = relationship(back_populates="user")


class OrderRecord(Base):
    __table__ = tables.orders

    user: Mapped[UserRecord] = relationship(back_populates="orders")
    # rows are removed by ON DELETE CASCADE, not by the session
    items: Mapped[List["OrderItemRecord"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    payment: Mapped[Optional["PaymentRecord"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class OrderItemRecord(Base):
    __table__ = tables.order_items

    order: Mapped[OrderRecord] = relationship(back_populates="items")
    product: Mapped[ProductRecord] = relationship()


class PaymentRecord(Base):
    __table__ = tables.payments

    order: Mapped[OrderRecord] = relationship(back_populates="payment")
