"""
Benchmark case definitions and the ordered case registry.

A case is a named unit of work executed identically against every
strategy: an optional setup, the measured call, and an optional teardown.
All three are coroutines taking ``(strategy, ctx)``.
"""

import itertools
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, Iterator, List, Optional

from ..strategies.base import (
    AccessStrategy,
    ListUsersFilters,
    NewOrderInput,
    NewOrderItem,
    NewProduct,
    NewUser,
    PageOptions,
    SortOptions,
)
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class CaseContext(dict):
    """
    Per-(case, strategy run) scratch space.

    Created fresh before setup and dropped after teardown; never shared
    between runs. Keys used by the bundled cases:

        user_id   int  id looked up by ``findUserById``
    """

    def require(self, key: str) -> Any:
        """Return ``self[key]`` or fail with a message naming the key."""
        try:
            return self[key]
        except KeyError:
            raise KeyError(f"Case context has no '{key}'; was it set in setup?") from None


CaseStep = Callable[[AccessStrategy, CaseContext], Awaitable[Any]]


@dataclass(frozen=True)
class BenchCase:
    """Immutable case definition."""
    name: str
    description: str
    run: CaseStep
    setup: Optional[CaseStep] = None
    teardown: Optional[CaseStep] = None


class CaseRegistry:
    """
    Ordered collection of cases, looked up by name.

    Example:
        registry = CaseRegistry()

        @registry.case("ping", "No-op round trip")
        async def ping(strategy, ctx):
            return None
    """

    def __init__(self, cases: Iterable[BenchCase] = ()):
        self._cases: Dict[str, BenchCase] = {}
        for bench_case in cases:
            self.register(bench_case)

    def register(self, bench_case: BenchCase) -> BenchCase:
        if bench_case.name in self._cases:
            raise ValueError(f"Duplicate case name: {bench_case.name}")
        self._cases[bench_case.name] = bench_case
        return bench_case

    def case(
        self,
        name: str,
        description: str,
        setup: Optional[CaseStep] = None,
        teardown: Optional[CaseStep] = None,
    ) -> Callable[[CaseStep], CaseStep]:
        """Decorator registering the decorated coroutine as a case's measured call."""
        def decorator(run: CaseStep) -> CaseStep:
            self.register(BenchCase(name, description, run, setup, teardown))
            return run
        return decorator

    def get(self, name: str) -> BenchCase:
        bench_case = self._cases.get(name)
        if bench_case is None:
            raise ConfigurationError(f"Unknown case: {name}", self.names())
        return bench_case

    def names(self) -> List[str]:
        return list(self._cases)

    def select(self, names: Optional[Iterable[str]] = None) -> List[BenchCase]:
        """
        Resolve names to cases in the given order.

        ``None`` selects every registered case. All names are checked before
        anything is returned so a bad selection fails as a whole.
        """
        if names is None:
            return list(self._cases.values())

        names = list(names)
        unknown = [n for n in names if n not in self._cases]
        if unknown:
            raise ConfigurationError(f"Unknown case(s): {', '.join(unknown)}", self.names())
        return [self._cases[n] for n in names]

    def __contains__(self, name: object) -> bool:
        return name in self._cases

    def __iter__(self) -> Iterator[BenchCase]:
        return iter(self._cases.values())

    def __len__(self) -> int:
        return len(self._cases)


# =============================================================================
# Default cases
# =============================================================================

CASES = CaseRegistry()

# Uniqueness across writes within one process
_write_seq = itertools.count(1)


def _unique_suffix() -> str:
    return f"{time.time_ns()}_{next(_write_seq)}"


# -- Read: simple -------------------------------------------------------------

async def _set_user_id(strategy: AccessStrategy, ctx: CaseContext) -> None:
    ctx["user_id"] = 500  # seeded data has at least 500 users


@CASES.case("findUserById", "PK lookup - SELECT by id", setup=_set_user_id)
async def find_user_by_id(strategy: AccessStrategy, ctx: CaseContext):
    return await strategy.find_user_by_id(ctx.require("user_id"))


@CASES.case("findUserByEmail", "Lookup by indexed email field")
async def find_user_by_email(strategy: AccessStrategy, ctx: CaseContext):
    return await strategy.find_user_by_email("user_500@example.com")


@CASES.case("listUsers_paged", "Paginated list - page 1, 20 rows, ORDER BY created_at DESC")
async def list_users_paged(strategy: AccessStrategy, ctx: CaseContext):
    return await strategy.list_users(
        ListUsersFilters(),
        SortOptions(field="created_at", dir="desc"),
        PageOptions(page=1, limit=20),
    )


@CASES.case("listUsers_filtered", "Paginated list with case-insensitive name filter")
async def list_users_filtered(strategy: AccessStrategy, ctx: CaseContext):
    return await strategy.list_users(
        ListUsersFilters(search="an"),
        SortOptions(field="name", dir="asc"),
        PageOptions(page=1, limit=20),
    )


# -- Read: medium -------------------------------------------------------------

@CASES.case("getOrderWithDetails", "JOIN orders + users + order_items + products")
async def get_order_with_details(strategy: AccessStrategy, ctx: CaseContext):
    return await strategy.get_order_with_details(100)


@CASES.case("getUserOrderTotals", "Aggregation - SUM total per user with GROUP BY")
async def get_user_order_totals(strategy: AccessStrategy, ctx: CaseContext):
    return await strategy.get_user_order_totals(50)


# -- Read: heavy --------------------------------------------------------------

@CASES.case("getLastOrderPerUser", "Top-1 order per user")
async def get_last_order_per_user(strategy: AccessStrategy, ctx: CaseContext):
    return await strategy.get_last_order_per_user(50)


@CASES.case("batchGetUsers", "Batch fetch - WHERE id IN (...) for 100 ids")
async def batch_get_users(strategy: AccessStrategy, ctx: CaseContext):
    return await strategy.batch_get_users(list(range(1, 101)))


# -- Write --------------------------------------------------------------------

@CASES.case("insertOneUser", "Single INSERT INTO users")
async def insert_one_user(strategy: AccessStrategy, ctx: CaseContext):
    suffix = _unique_suffix()
    return await strategy.insert_one_user(
        NewUser(email=f"bench_{suffix}@test.com", name=f"Bench {suffix}")
    )


@CASES.case("insertManyProducts_100", "Bulk INSERT 100 rows in one statement")
async def insert_many_products(strategy: AccessStrategy, ctx: CaseContext):
    suffix = _unique_suffix()
    rows = [
        NewProduct(
            category_id=1,
            name=f"BenchProduct_{suffix}_{i}",
            price=round(random.random() * 100, 2),
            stock=50,
        )
        for i in range(100)
    ]
    return await strategy.insert_many_products(rows)


@CASES.case("createOrderWithItems", "Transactional write - order + 3 items + payment")
async def create_order_with_items(strategy: AccessStrategy, ctx: CaseContext):
    return await strategy.create_order_with_items(
        NewOrderInput(
            user_id=1,
            items=[
                NewOrderItem(product_id=1, quantity=2, unit_price=9.99),
                NewOrderItem(product_id=2, quantity=1, unit_price=24.99),
                NewOrderItem(product_id=3, quantity=3, unit_price=4.5),
            ],
            payment_amount=59.47,
        )
    )


# -- Update / Delete ----------------------------------------------------------

@CASES.case("updateOrderStatus", "UPDATE single row by PK")
async def update_order_status(strategy: AccessStrategy, ctx: CaseContext):
    return await strategy.update_order_status(1, "shipped")


def list_cases() -> List[str]:
    """List all registered case names."""
    return CASES.names()
