#!/usr/bin/env python3
"""
Data-Access Benchmark - CLI Entry Point

Usage:
    python main.py run --strategy raw,dal --iterations 50
    python main.py run -s raw -c findUserById -n 200
    python main.py list-cases
"""

from dbbench.cli import cli


if __name__ == "__main__":
    cli()
