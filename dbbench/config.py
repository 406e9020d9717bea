"""
Configuration management for the data-access benchmark.
Loads settings from environment variables and .env file.
"""

import os
from pathlib import Path
from typing import Dict, Any, Optional
from dotenv import find_dotenv, load_dotenv

# Load .env from the working directory or the nearest parent holding one
load_dotenv(find_dotenv(usecwd=True))


# Seed volumes per data size
DATA_SIZES: Dict[str, Dict[str, int]] = {
    "S": {"users": 1_000, "products": 500, "orders_per_user": 2},
    "M": {"users": 10_000, "products": 2_000, "orders_per_user": 5},
    "L": {"users": 100_000, "products": 10_000, "orders_per_user": 10},
}


class Config:
    """Central configuration management."""

    # ==========================================================================
    # Benchmark Settings
    # ==========================================================================
    WARMUP: int = int(os.getenv("BENCH_WARMUP", "5"))
    ITERATIONS: int = int(os.getenv("BENCH_ITERATIONS", "50"))
    # Per-iteration deadline in seconds, 0 disables it
    ITERATION_TIMEOUT: float = float(os.getenv("BENCH_ITERATION_TIMEOUT", "0"))

    # Output directory
    REPORT_DIR: Path = Path(os.getenv("REPORT_DIR", "bench/reports"))

    # ==========================================================================
    # Database Settings
    # ==========================================================================
    SQLITE_PATH: str = os.getenv("SQLITE_PATH", ":memory:")
    DATA_SIZE: str = os.getenv("BENCH_DATA_SIZE", "S").upper()

    # ==========================================================================
    # Strategy Configurations
    # ==========================================================================

    @classmethod
    def get_sqlite_config(cls) -> Dict[str, Any]:
        """Get configuration shared by the SQLite-backed strategies."""
        return {
            "path": cls.SQLITE_PATH,
            "data_size": cls.DATA_SIZE,
        }

    @classmethod
    def get_strategy_config(cls, strategy_name: str) -> Optional[Dict[str, Any]]:
        """Get configuration for a specific strategy by name."""
        config_methods = {
            "raw": cls.get_sqlite_config,
            "qb": cls.get_sqlite_config,
            "dal": cls.get_sqlite_config,
            "orm": cls.get_sqlite_config,
        }

        method = config_methods.get(strategy_name.lower())
        if method:
            return method()
        return None

    @classmethod
    def get_data_size(cls, name: str) -> Dict[str, int]:
        """Resolve a data size name (S/M/L) to its seed volumes."""
        size = DATA_SIZES.get(name.upper())
        if size is None:
            available = ", ".join(DATA_SIZES.keys())
            raise ValueError(f"Unknown data size: {name}. Available: {available}")
        return size

    @classmethod
    def ensure_directories(cls, report_dir: Optional[Path] = None) -> Path:
        """Create the report directory if it doesn't exist."""
        target = Path(report_dir) if report_dir else cls.REPORT_DIR
        target.mkdir(parents=True, exist_ok=True)
        return target
