"""
Utility functions for benchmark module.
Separated to avoid circular imports.
"""

import os
import platform
import socket
from datetime import datetime
from typing import Dict, Optional


def get_machine_info() -> Dict[str, str]:
    """
    Get machine information for report context.

    Returns:
        Dictionary with machine details including:
        - hostname: Machine hostname
        - platform: OS platform info
        - python: Interpreter implementation and version
        - cpu_count: Logical CPUs
        - sqlite: SQLite library version used by the bundled strategies
    """
    import sqlite3

    return {
        "hostname": socket.gethostname(),
        "platform": f"{platform.system()} {platform.release()}",
        "python": f"{platform.python_implementation()} {platform.python_version()}",
        "cpu_count": str(os.cpu_count() or "unknown"),
        "sqlite": sqlite3.sqlite_version,
    }


def get_report_timestamp(now: Optional[datetime] = None) -> str:
    """
    Timestamp embedded in report file names.

    Format: YYYYMMDD_HHMMSS
    Example: 20251224_153012
    """
    return (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
