"""
Data-access strategies package.
Each strategy implements the AccessStrategy interface.
"""

from typing import Any, Dict, Optional

from .base import AccessStrategy, StrategyError
from .raw import RawSqlStrategy
from .query_builder import QueryBuilderStrategy
from .dal import DataAccessLayerStrategy
from .orm import OrmStrategy

# Registry of available strategies, in default run order
STRATEGIES = {
    "raw": RawSqlStrategy,
    "qb": QueryBuilderStrategy,
    "dal": DataAccessLayerStrategy,
    "orm": OrmStrategy,
}


def get_strategy(name: str, config: Optional[Dict[str, Any]] = None) -> AccessStrategy:
    """
    Get a strategy instance by name.

    Args:
        name: Strategy name (e.g., 'raw', 'orm')
        config: Optional configuration overriding the environment

    Returns:
        Strategy instance

    Raises:
        ValueError: If strategy is not found
    """
    strategy_class = STRATEGIES.get(name.lower())
    if not strategy_class:
        available = ", ".join(STRATEGIES.keys())
        raise ValueError(f"Unknown strategy: {name}. Available: {available}")

    return strategy_class(config)


def list_strategies() -> list:
    """List all available strategy names."""
    return list(STRATEGIES.keys())


__all__ = [
    "AccessStrategy",
    "StrategyError",
    "RawSqlStrategy",
    "QueryBuilderStrategy",
    "DataAccessLayerStrategy",
    "OrmStrategy",
    "get_strategy",
    "list_strategies",
    "STRATEGIES",
]
