"""
API Routers
Separate router modules for each concern.
"""

from app.routers import health, resolve, tap

__all__ = ["health", "resolve", "tap"]
