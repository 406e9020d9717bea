"""
dbbench - latency benchmark harness for interchangeable data-access strategies.
"""

__version__ = "1.0.0"
