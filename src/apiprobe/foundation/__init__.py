"""Foundation utilities for shared infrastructure components.

This package provides shared utilities including:
- Async HTTP client factory
- Structured JSON logging
- Retry helpers built on tenacity
- Background task helpers
"""
