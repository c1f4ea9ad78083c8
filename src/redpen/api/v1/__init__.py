# src/redpen/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    critiques_router,
    payments_router,
    posts_router,
    users_router,
)

__all__ = [
    "posts_router",
    "critiques_router",
    "users_router",
    "payments_router",
]
