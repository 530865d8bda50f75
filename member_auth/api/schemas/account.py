from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ChangePasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field("", alias="currentPassword", max_length=256)
    new_password: str = Field("", alias="newPassword", max_length=256)
    confirm_password: str = Field("", alias="confirmPassword", max_length=256)


class DeleteAccountRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1)
    confirm_email: str = Field(..., alias="confirmEmail")


class DeleteAccountResponse(BaseModel):
    success: bool
    message: str
    subscription_canceled: bool
    audit_logged: bool


class MembershipResponse(BaseModel):
    user_id: str
    email: str
    membership: str
    membership_updated_at: datetime | None
    stripe_customer_id: str | None
    stripe_subscription_id: str | None
    payment_status: str | None
