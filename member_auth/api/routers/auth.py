from __future__ import annotations

from fastapi import APIRouter, Depends, Header

from member_auth.api.deps import (
    get_caller_ip,
    get_forgot_password_use_case,
    get_login_google_use_case,
    get_login_local_use_case,
    get_register_user_use_case,
    get_reset_password_use_case,
    rate_limit,
)
from member_auth.api.schemas.auth import (
    ForgotPasswordRequest,
    GoogleLoginRequest,
    LoginRequest,
    MessageResponse,
    ResetPasswordRequest,
    SessionResponse,
    SignupRequest,
    SignupResponse,
    UserResponse,
)
from member_auth.application.dto.auth import (
    AuthUserOutput,
    ForgotPasswordInput,
    LoginGoogleInput,
    LoginLocalInput,
    RegisterUserInput,
    ResetPasswordInput,
    SessionOutput,
)
from member_auth.application.use_cases.forgot_password import ForgotPasswordUseCase
from member_auth.application.use_cases.login_google import LoginGoogleUseCase
from member_auth.application.use_cases.login_local import LoginLocalUseCase
from member_auth.application.use_cases.register_user import RegisterUserUseCase
from member_auth.application.use_cases.reset_password import ResetPasswordUseCase


router = APIRouter()


def _user_response(user: AuthUserOutput) -> UserResponse:
    return UserResponse(id=user.id, name=user.name, email=user.email, membership=user.membership)


def _session_response(output: SessionOutput) -> SessionResponse:
    return SessionResponse(
        session_token=output.session_token,
        expires_at=output.expires_at,
        user=_user_response(output.user),
    )


@router.post(
    "/auth/signup",
    response_model=SignupResponse,
    dependencies=[Depends(rate_limit("signup"))],
)
def signup(
    req: SignupRequest,
    use_case: RegisterUserUseCase = Depends(get_register_user_use_case),
):
    output = use_case.execute(
        RegisterUserInput(
            name=req.name,
            email=req.email,
            password=req.password,
        )
    )
    return SignupResponse(user=_user_response(output.user), message=output.message)


@router.post(
    "/auth/login",
    response_model=SessionResponse,
    dependencies=[Depends(rate_limit("login"))],
)
def login(
    req: LoginRequest,
    user_agent: str | None = Header(default=None),
    ip: str = Depends(get_caller_ip),
    use_case: LoginLocalUseCase = Depends(get_login_local_use_case),
):
    output = use_case.execute(
        LoginLocalInput(
            email=req.email,
            password=req.password,
            user_agent=user_agent,
            ip=ip,
        )
    )
    return _session_response(output)


@router.post(
    "/auth/google",
    response_model=SessionResponse,
    dependencies=[Depends(rate_limit("login"))],
)
def login_google(
    req: GoogleLoginRequest,
    user_agent: str | None = Header(default=None),
    ip: str = Depends(get_caller_ip),
    use_case: LoginGoogleUseCase = Depends(get_login_google_use_case),
):
    output = use_case.execute(
        LoginGoogleInput(
            id_token=req.id_token,
            user_agent=user_agent,
            ip=ip,
        )
    )
    return _session_response(output)


@router.post(
    "/auth/forgot-password",
    response_model=MessageResponse,
    dependencies=[Depends(rate_limit("forgot-password"))],
)
def forgot_password(
    req: ForgotPasswordRequest,
    use_case: ForgotPasswordUseCase = Depends(get_forgot_password_use_case),
):
    output = use_case.execute(ForgotPasswordInput(email=req.email))
    return MessageResponse(message=output.message)


@router.post(
    "/auth/reset-password",
    response_model=MessageResponse,
    dependencies=[Depends(rate_limit("reset-password"))],
)
def reset_password(
    req: ResetPasswordRequest,
    user_agent: str | None = Header(default=None),
    ip: str = Depends(get_caller_ip),
    use_case: ResetPasswordUseCase = Depends(get_reset_password_use_case),
):
    output = use_case.execute(
        ResetPasswordInput(
            token=req.token,
            password=req.password,
            ip=ip,
            user_agent=user_agent,
        )
    )
    return MessageResponse(message=output.message)
