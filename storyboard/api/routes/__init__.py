"""
API Routes.
"""
from .health import router as health_router
from .storyboard import router as storyboard_router

__all__ = [
    "health_router",
    "storyboard_router",
]
