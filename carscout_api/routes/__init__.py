"""
Route package initialization.
"""
from .platforms import router as platforms_router
from .search import router as search_router

__all__ = ["platforms_router", "search_router"]
