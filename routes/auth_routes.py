"""
Authentication endpoints.

POST /auth/register                  create account, send verification code
POST /auth/login                     password login, throttled per email
POST /auth/send-verification         (re)send the email verification code
POST /auth/verify-email              redeem the email verification code
POST /auth/request-password-reset    send a password reset code
POST /auth/reset-password            redeem the reset code, set new password
POST /auth/admin/unblock             lift a throttle block (X-Admin-Token)

Handlers stay thin: AuthService raises AppErrors, which the global handler
renders.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from dependencies import get_auth_service, require_admin
from schemas.dto.requests.auth import (
    LoginRequest,
    RegisterRequest,
    RequestPasswordResetRequest,
    ResetPasswordRequest,
    SendVerificationRequest,
    UnblockRequest,
    VerifyEmailRequest,
)
from schemas.dto.responses.auth import (
    ChallengeIssuedResponse,
    LoginResponse,
    UnblockResponse,
)
from schemas.dto.responses.common import ErrorResponse, MessageResponse
from services.auth_service import AuthService

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
    responses={
        400: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)

# Same wording whether or not the email belongs to an account.
_CODE_SENT_MESSAGE = "If an account exists for this email, a code has been sent."


@router.post(
    "/register",
    response_model=ChallengeIssuedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register(
    body: RegisterRequest, auth: AuthService = Depends(get_auth_service)
) -> ChallengeIssuedResponse:
    challenge = await auth.register(body.email, body.password)
    return ChallengeIssuedResponse(
        message="User registered successfully, please check your email for verification.",
        challenge_issued_at=challenge.issued_at,
        expires_at=challenge.expires_at,
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest, auth: AuthService = Depends(get_auth_service)
) -> LoginResponse:
    result = await auth.login(body.email, body.password)
    return LoginResponse(
        access_token=result.access_token,
        expires_in=result.expires_in,
        email_verified=result.email_verified,
    )


@router.post("/send-verification", response_model=ChallengeIssuedResponse)
async def send_verification(
    body: SendVerificationRequest, auth: AuthService = Depends(get_auth_service)
) -> ChallengeIssuedResponse:
    await auth.request_email_verification(body.email)
    return ChallengeIssuedResponse(message=_CODE_SENT_MESSAGE)


@router.post("/verify-email", response_model=MessageResponse)
async def verify_email(
    body: VerifyEmailRequest, auth: AuthService = Depends(get_auth_service)
) -> MessageResponse:
    await auth.verify_email(body.email, body.code)
    return MessageResponse(success=True, message="Email verified successfully")


@router.post("/request-password-reset", response_model=ChallengeIssuedResponse)
async def request_password_reset(
    body: RequestPasswordResetRequest, auth: AuthService = Depends(get_auth_service)
) -> ChallengeIssuedResponse:
    await auth.request_password_reset(body.email)
    return ChallengeIssuedResponse(message=_CODE_SENT_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest, auth: AuthService = Depends(get_auth_service)
) -> MessageResponse:
    await auth.reset_password(body.email, body.code, body.new_password)
    return MessageResponse(success=True, message="Password reset successful")


@router.post(
    "/admin/unblock",
    response_model=UnblockResponse,
    dependencies=[Depends(require_admin)],
)
async def admin_unblock(
    body: UnblockRequest, auth: AuthService = Depends(get_auth_service)
) -> UnblockResponse:
    cleared = await auth.unblock(body.subject_id, body.scope)
    return UnblockResponse(subject_id=body.subject_id, scope=body.scope, cleared=cleared)
