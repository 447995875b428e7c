"""
API route handlers.
"""

from . import search

__all__ = ["search"]
