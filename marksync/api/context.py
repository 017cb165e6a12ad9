"""Shared API request context."""

from marksync.core.logging_utils import correlation_id_ctx

__all__ = ["correlation_id_ctx"]
