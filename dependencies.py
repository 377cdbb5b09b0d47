"""
Depends() providers for the routes.

The lifespan in app.py builds the MongoDB handle, the optional Redis client
and the AuthService once and parks them on app.state; these functions only
hand them out.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, Request

from config import AppSettings
from errors import ForbiddenError
from services.auth_service import AuthService
from shared.crypto import constant_time_equals


def get_settings(request: Request) -> AppSettings:
    return request.app.state.settings


async def get_db(request: Request):
    """The AsyncDatabase opened in the lifespan."""
    return request.app.state.db


async def get_redis(request: Request):
    """The Redis client, or None when REDIS_URI is unset."""
    return request.app.state.redis


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def require_admin(
    x_admin_token: Optional[str] = Header(default=None),
    settings: AppSettings = Depends(get_settings),
) -> None:
    """Reject the request unless X-Admin-Token matches the configured ADMIN_TOKEN."""
    expected = settings.admin_token
    if not expected or not x_admin_token or not constant_time_equals(
        x_admin_token, expected
    ):
        raise ForbiddenError("Admin token required")
