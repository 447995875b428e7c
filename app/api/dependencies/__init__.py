"""API dependencies for FastAPI dependency injection."""

from app.api.dependencies import search_resources

__all__ = ["search_resources"]
