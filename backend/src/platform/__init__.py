"""
Platform-level modules shared by the API layer.

- user_context: Current parent account and subscription snapshot
"""

from src.platform.user_context import (
    UserContext,
    UserContextMiddleware,
    get_user_context,
    header_user_provider,
)

__all__ = [
    "UserContext",
    "UserContextMiddleware",
    "get_user_context",
    "header_user_provider",
]
