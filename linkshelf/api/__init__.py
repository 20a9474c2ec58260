"""LinkShelf API package."""

from linkshelf.api.router import api_router

__all__ = ["api_router"]
