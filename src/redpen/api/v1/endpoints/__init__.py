# src/redpen/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .critiques import router as critiques_router
from .payments import router as payments_router
from .posts import router as posts_router
from .users import router as users_router

__all__ = [
    "posts_router",
    "critiques_router",
    "users_router",
    "payments_router",
]
