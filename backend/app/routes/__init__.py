"""API routes."""

from .auth import router as auth_router
from .metadata import router as metadata_router
from .sync import router as sync_router

__all__ = [
    "auth_router",
    "metadata_router",
    "sync_router",
]
