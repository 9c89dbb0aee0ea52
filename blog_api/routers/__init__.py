"""Aggregate router exports."""
from .admin_images import router as admin_images_router
from .images import router as images_router
from .public_posts import router as public_posts_router

__all__ = [
    "admin_images_router",
    "images_router",
    "public_posts_router",
]
