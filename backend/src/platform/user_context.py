"""
Current-user context for subscription checks.

The session gateway in front of this service authenticates the parent
account and forwards the user record (id plus subscription fields) as JSON
in a trusted request header. UserContextMiddleware turns that record into a
UserContext on request.state.user_context; routes only read it.

A missing or unusable user record is an unauthenticated visitor, which is a
valid input for entitlement checks (it resolves to "expired"), so the
middleware never rejects a request.

SECURITY: the gateway must strip the user header from client requests
before setting its own.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Optional

from fastapi import Request

from src.entitlements.models import SubscriptionRecord

logger = logging.getLogger(__name__)

USER_HEADER_ENV = "USER_CONTEXT_HEADER"
DEFAULT_USER_HEADER = "X-Authenticated-User"

# Paths served without looking up the user
PUBLIC_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}

UserProvider = Callable[[Request], Awaitable[Optional[Mapping[str, Any]]]]


@dataclass(frozen=True)
class UserContext:
    """Authenticated user with a snapshot of their subscription fields."""
    user_id: str
    subscription: SubscriptionRecord = field(default_factory=SubscriptionRecord)

    @classmethod
    def from_user_record(cls, user: Mapping[str, Any]) -> "UserContext":
        """
        Build a context from a backend user payload.

        Args:
            user: User dict with an "id" and subscription fields
                  (subscriptionStatus, trialEndsAt, subscriptionEndDate, subscriptionPlan)

        Raises:
            ValueError: If the payload has no user id
        """
        user_id = user.get("id")
        if user_id is None:
            user_id = user.get("user_id")
        if user_id is None or user_id == "":
            raise ValueError("User record has no id")
        return cls(
            user_id=str(user_id),
            subscription=SubscriptionRecord.from_dict(user),
        )


def get_user_context(request: Request) -> Optional[UserContext]:
    """
    Extract the user context from request state.

    Returns None for unauthenticated requests.
    """
    user_context = getattr(request.state, "user_context", None)
    if user_context is None:
        logger.debug("No user context on request", extra={"path": request.url.path})
    return user_context


def header_user_provider(header_name: Optional[str] = None) -> UserProvider:
    """
    Build a provider that reads the gateway's user record header.

    Args:
        header_name: Header carrying the JSON user record
                     (defaults to $USER_CONTEXT_HEADER or X-Authenticated-User)
    """
    name = header_name or os.getenv(USER_HEADER_ENV, DEFAULT_USER_HEADER)

    async def provide(request: Request) -> Optional[Mapping[str, Any]]:
        raw = request.headers.get(name)
        if not raw:
            return None
        user = json.loads(raw)
        if not isinstance(user, dict):
            raise ValueError(f"{name} must carry a JSON object")
        return user

    return provide


class UserContextMiddleware:
    """
    FastAPI middleware that attaches the signed-in user to request.state.

    Usage:
        app.middleware("http")(UserContextMiddleware())
    """

    def __init__(self, user_provider: Optional[UserProvider] = None):
        """
        Initialize middleware.

        Args:
            user_provider: Async callable returning the user record for a
                           request, or None when signed out (defaults to the
                           gateway header provider)
        """
        self._user_provider = user_provider or header_user_provider()

    async def __call__(self, request: Request, call_next):
        if request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        try:
            user = await self._user_provider(request)
            if user is not None:
                request.state.user_context = UserContext.from_user_record(user)
        except ValueError as e:
            # json.JSONDecodeError is a ValueError
            logger.warning(
                "Ignoring unusable user record, treating request as signed out",
                extra={"path": request.url.path, "error": str(e)},
            )

        return await call_next(request)
