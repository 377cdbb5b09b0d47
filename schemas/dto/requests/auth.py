"""
Request DTOs for authentication endpoints.

RegisterRequest                 POST /auth/register
LoginRequest                    POST /auth/login
SendVerificationRequest         POST /auth/send-verification
VerifyEmailRequest              POST /auth/verify-email
RequestPasswordResetRequest     POST /auth/request-password-reset
ResetPasswordRequest            POST /auth/reset-password
UnblockRequest                  POST /auth/admin/unblock
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str


class SendVerificationRequest(BaseModel):
    """Request body for POST /auth/send-verification (also the resend path)."""

    model_config = ConfigDict(populate_by_name=True)

    email: str


class VerifyEmailRequest(BaseModel):
    """Request body for POST /auth/verify-email.

    ``code`` is the one-time code sent to the user's email address.
    """

    model_config = ConfigDict(populate_by_name=True)

    email: str
    code: str = Field(min_length=1, max_length=64)


class RequestPasswordResetRequest(BaseModel):
    """Request body for POST /auth/request-password-reset."""

    model_config = ConfigDict(populate_by_name=True)

    email: str


class ResetPasswordRequest(BaseModel):
    """Request body for POST /auth/reset-password."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    code: str = Field(min_length=1, max_length=64)
    new_password: str = Field(alias="password")


class UnblockRequest(BaseModel):
    """Request body for POST /auth/admin/unblock."""

    model_config = ConfigDict(populate_by_name=True)

    subject_id: str
    scope: str
