"""
API route handlers.
"""

from . import bookmarks, service

__all__ = [
    "bookmarks",
    "service",
]
