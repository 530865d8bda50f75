from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Response

from member_auth.api.deps import (
    get_caller_ip,
    get_change_password_use_case,
    get_current_user,
    get_delete_account_use_case,
    get_get_membership_use_case,
    get_optional_current_user,
    rate_limit,
)
from member_auth.api.schemas.account import (
    ChangePasswordRequest,
    DeleteAccountRequest,
    DeleteAccountResponse,
    MembershipResponse,
)
from member_auth.application.dto.account import DeleteAccountInput
from member_auth.application.dto.auth import ChangePasswordInput
from member_auth.application.use_cases.change_password import ChangePasswordUseCase
from member_auth.application.use_cases.delete_account import DeleteAccountUseCase
from member_auth.application.use_cases.get_membership import GetMembershipUseCase
from member_auth.domain.entities.user import User


router = APIRouter()


@router.patch(
    "/account/password",
    status_code=204,
    response_class=Response,
    dependencies=[Depends(rate_limit("password-change"))],
)
def change_password(
    req: ChangePasswordRequest,
    user_agent: str | None = Header(default=None),
    ip: str = Depends(get_caller_ip),
    current_user: User = Depends(get_current_user),
    use_case: ChangePasswordUseCase = Depends(get_change_password_use_case),
):
    use_case.execute(
        ChangePasswordInput(
            user_id=current_user.id,
            current_password=req.current_password,
            new_password=req.new_password,
            confirm_password=req.confirm_password,
            ip=ip,
            user_agent=user_agent,
        )
    )
    return None


@router.delete(
    "/account",
    response_model=DeleteAccountResponse,
    dependencies=[Depends(rate_limit("account-delete"))],
)
def delete_account(
    req: DeleteAccountRequest,
    user_agent: str | None = Header(default=None),
    ip: str = Depends(get_caller_ip),
    current_user: User | None = Depends(get_optional_current_user),
    use_case: DeleteAccountUseCase = Depends(get_delete_account_use_case),
):
    output = use_case.execute(
        DeleteAccountInput(
            requesting_user=current_user,
            target_user_id=req.user_id,
            confirm_email=req.confirm_email,
            ip=ip,
            user_agent=user_agent,
        )
    )
    return DeleteAccountResponse(
        success=output.success,
        message=output.message,
        subscription_canceled=output.subscription_canceled,
        audit_logged=output.audit_logged,
    )


@router.get("/account/membership", response_model=MembershipResponse)
def get_membership(
    current_user: User = Depends(get_current_user),
    use_case: GetMembershipUseCase = Depends(get_get_membership_use_case),
):
    view = use_case.execute(user_id=current_user.id)
    return MembershipResponse(
        user_id=view.user_id,
        email=view.email,
        membership=view.membership,
        membership_updated_at=view.membership_updated_at,
        stripe_customer_id=view.stripe_customer_id,
        stripe_subscription_id=view.stripe_subscription_id,
        payment_status=view.payment_status,
    )
