"""apiprobe: API test harness with opportunistic call logging to PostgreSQL."""

__version__ = "0.1.0"
