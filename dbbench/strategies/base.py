"""
Base access-strategy interface for the benchmark.
All strategies must implement this interface.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional

logger = logging.getLogger(__name__)


# =============================================================================
# Domain rows
# =============================================================================

@dataclass
class User:
    id: int
    email: str
    name: str
    created_at: str


@dataclass
class Order:
    id: int
    user_id: int
    status: str
    total: float
    created_at: str


@dataclass
class OrderItem:
    id: int
    order_id: int
    product_id: int
    quantity: int
    unit_price: float
    product_name: str = ""


@dataclass
class OrderWithDetails:
    """Order joined with its user and line items."""
    order: Order
    user: Dict[str, Any]
    items: List[OrderItem] = field(default_factory=list)


@dataclass
class UserOrderTotal:
    user_id: int
    user_name: str
    order_count: int
    total_spent: float


@dataclass
class LastOrderPerUser:
    user_id: int
    user_email: str
    last_order_id: int
    last_order_total: float
    last_order_at: str


# =============================================================================
# Inputs
# =============================================================================

@dataclass
class PageOptions:
    page: int = 1  # 1-based
    limit: int = 20

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class SortOptions:
    field: str = "id"
    dir: str = "asc"


@dataclass
class ListUsersFilters:
    created_after: Optional[str] = None
    search: Optional[str] = None  # case-insensitive substring match on name


@dataclass
class NewUser:
    email: str
    name: str


@dataclass
class NewProduct:
    category_id: int
    name: str
    price: float
    stock: int = 0


@dataclass
class NewOrderItem:
    product_id: int
    quantity: int
    unit_price: float


@dataclass
class NewOrderInput:
    user_id: int
    items: List[NewOrderItem]
    payment_amount: float


class AccessStrategy(ABC):
    """
    Abstract base class for data-access strategies.

    Every operation is a coroutine and may raise; the harness only awaits
    them and times the call. A strategy owns its connection resources and
    gives them back in ``close()``, which the orchestrator calls exactly
    once per instance.

    Example:
        class MyStrategy(AccessStrategy):
            name = "mine"

            async def find_user_by_id(self, user_id):
                ...
    """

    # Strategy identification
    name: str = "base"
    display_name: str = "Base Strategy"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """Initialize strategy with configuration."""
        self.config = config if config is not None else self._load_config()
        self._validate_config()

    @abstractmethod
    def _load_config(self) -> Dict[str, Any]:
        """
        Load strategy-specific configuration.

        Returns:
            Dictionary containing strategy configuration
        """
        pass

    def _validate_config(self) -> None:
        """
        Validate that required configuration is present.
        Raises ConfigurationError if validation fails.
        """
        pass

    # -- Read: simple ---------------------------------------------------------

    @abstractmethod
    async def find_user_by_id(self, user_id: int) -> Optional[User]:
        pass

    @abstractmethod
    async def find_user_by_email(self, email: str) -> Optional[User]:
        pass

    @abstractmethod
    async def list_users(
        self,
        filters: ListUsersFilters,
        sort: SortOptions,
        page: PageOptions,
    ) -> List[User]:
        pass

    # -- Read: joins / aggregation --------------------------------------------

    @abstractmethod
    async def get_order_with_details(self, order_id: int) -> Optional[OrderWithDetails]:
        pass

    @abstractmethod
    async def get_user_order_totals(self, limit: int = 20) -> List[UserOrderTotal]:
        pass

    # -- Read: top-N and batch ------------------------------------------------

    @abstractmethod
    async def get_last_order_per_user(self, limit: int = 20) -> List[LastOrderPerUser]:
        pass

    @abstractmethod
    async def batch_get_users(self, ids: List[int]) -> List[User]:
        pass

    # -- Write ----------------------------------------------------------------

    @abstractmethod
    async def insert_one_user(self, data: NewUser) -> User:
        pass

    @abstractmethod
    async def insert_many_products(self, rows: List[NewProduct]) -> int:
        """Insert all rows in one statement and return the inserted count."""
        pass

    @abstractmethod
    async def create_order_with_items(self, data: NewOrderInput) -> Order:
        """Insert order, items and payment atomically."""
        pass

    # -- Update / delete ------------------------------------------------------

    @abstractmethod
    async def update_order_status(self, order_id: int, status: str) -> bool:
        pass

    @abstractmethod
    async def delete_order(self, order_id: int) -> bool:
        pass

    # -- Lifecycle ------------------------------------------------------------

    @abstractmethod
    async def close(self) -> None:
        """Release every resource owned by this strategy."""
        pass

    async def __aenter__(self) -> "AccessStrategy":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        logger.info(f"Releasing strategy: {self.name}")
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name})>"


class StrategyError(Exception):
    """Base exception for strategy errors."""
    pass


class StrategyConfigError(StrategyError):
    """Raised when strategy configuration is invalid."""
    pass


class StrategyClosedError(StrategyError):
    """Raised when an operation is attempted on a released strategy."""
    pass
