from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class SignupRequest(BaseModel):
    name: str = Field(..., max_length=120)
    email: str = Field(..., max_length=255)
    password: str = Field(..., max_length=256)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=256)


class GoogleLoginRequest(BaseModel):
    id_token: str = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: str = Field(..., max_length=255)


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., max_length=256)
    password: str = Field(..., max_length=256)


class UserResponse(BaseModel):
    id: str
    name: str
    email: str
    membership: str


class SignupResponse(BaseModel):
    user: UserResponse
    message: str


class SessionResponse(BaseModel):
    session_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserResponse


class MessageResponse(BaseModel):
    message: str
