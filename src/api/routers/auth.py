"""Account and session endpoints."""
from fastapi import APIRouter, Depends, HTTPException, status

from api.dependencies import get_auth_service, get_bearer_token, get_current_user
from models.user import AuthUser
from schemas.auth import (
    Credentials,
    MessageResponse,
    PasswordResetConfirm,
    PasswordResetRequest,
    SessionResponse,
    SignUpResponse,
    UserResponse,
    VerifyEmailRequest,
)
from services.auth_service import AuthService, AuthSession
from services.exceptions import (
    AccountNotFoundError,
    AccountNotVerifiedError,
    CodeExpiredError,
    EmailAlreadyRegisteredError,
    InvalidCodeError,
    InvalidCredentialsError,
)

router = APIRouter(prefix="/auth", tags=["auth"])


def _session_response(session: AuthSession) -> SessionResponse:
    return SessionResponse(
        user=UserResponse.model_validate(session.user),
        token=session.token,
        expires_at=session.expires_at,
    )


@router.post("/signup", response_model=SignUpResponse, status_code=201)
async def sign_up(
    data: Credentials,
    auth_service: AuthService = Depends(get_auth_service),
) -> SignUpResponse:
    """
    Register an account.

    When e-mail verification is enabled, a code is sent and no session is
    returned until /auth/verify succeeds.
    """
    try:
        result = await auth_service.sign_up(data.email, data.password)
    except EmailAlreadyRegisteredError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return SignUpResponse(
        user=UserResponse.model_validate(result.user),
        requires_verification=result.requires_verification,
        session=_session_response(result.session) if result.session else None,
    )


@router.post("/verify", response_model=SessionResponse)
async def verify_email(
    data: VerifyEmailRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> SessionResponse:
    """Confirm the e-mail with the code sent at sign-up and open a session."""
    try:
        session = await auth_service.verify_email(data.email, data.code)
    except AccountNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidCodeError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except CodeExpiredError as e:
        raise HTTPException(status_code=status.HTTP_410_GONE, detail=str(e))
    return _session_response(session)


@router.post("/signin", response_model=SessionResponse)
async def sign_in(
    data: Credentials,
    auth_service: AuthService = Depends(get_auth_service),
) -> SessionResponse:
    """Sign in with e-mail and password."""
    try:
        session = await auth_service.sign_in(data.email, data.password)
    except InvalidCredentialsError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
    except AccountNotVerifiedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return _session_response(session)


@router.post("/signout", status_code=204)
async def sign_out(
    token: str = Depends(get_bearer_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> None:
    """End the current session. Signing out an unknown session is a no-op."""
    await auth_service.sign_out(token)


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: AuthUser = Depends(get_current_user)) -> UserResponse:
    """Get the signed-in user."""
    return UserResponse.model_validate(current_user)


@router.post("/password-reset", response_model=MessageResponse, status_code=202)
async def request_password_reset(
    data: PasswordResetRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Send a password reset code."""
    try:
        await auth_service.request_password_reset(data.email)
    except AccountNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return MessageResponse(message="A reset code has been sent.")


@router.post("/password-reset/confirm", response_model=UserResponse)
async def confirm_password_reset(
    data: PasswordResetConfirm,
    auth_service: AuthService = Depends(get_auth_service),
) -> UserResponse:
    """Set a new password using the reset code."""
    try:
        user = await auth_service.reset_password(data.email, data.code, data.new_password)
    except AccountNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidCodeError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except CodeExpiredError as e:
        raise HTTPException(status_code=status.HTTP_410_GONE, detail=str(e))
    return UserResponse.model_validate(user)
