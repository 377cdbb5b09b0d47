"""
Response DTOs for authentication endpoints.

ChallengeIssuedResponse   POST /auth/register (201), /auth/send-verification,
                          /auth/request-password-reset (200)
LoginResponse             POST /auth/login (200)
UnblockResponse           POST /auth/admin/unblock (200)
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ChallengeIssuedResponse(BaseModel):
    """Returned whenever a code was (or, for unknown emails, appears to be) sent.

    The timestamps are only present for registration, where the account is
    known to exist; request endpoints answer with the message alone.
    """

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    challenge_issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class LoginResponse(BaseModel):
    """Response body for POST /auth/login (200)."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    email_verified: bool


class UnblockResponse(BaseModel):
    """Response body for POST /auth/admin/unblock (200)."""

    model_config = ConfigDict(populate_by_name=True)

    subject_id: str
    scope: str
    cleared: bool
