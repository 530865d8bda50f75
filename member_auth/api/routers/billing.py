from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Request
from starlette.concurrency import run_in_threadpool

from member_auth.api.deps import (
    get_app_settings,
    get_create_checkout_session_use_case,
    get_create_portal_session_use_case,
    get_current_user,
    get_process_stripe_webhook_use_case,
    rate_limit,
    require_stripe_source_ip,
)
from member_auth.api.schemas.billing import (
    CheckoutSessionResponse,
    PortalSessionResponse,
    StripeWebhookResponse,
)
from member_auth.application.dto.billing import (
    CreateCheckoutSessionInput,
    CreatePortalSessionInput,
    StripeWebhookInput,
)
from member_auth.application.use_cases.create_checkout_session import CreateCheckoutSessionUseCase
from member_auth.application.use_cases.create_portal_session import CreatePortalSessionUseCase
from member_auth.application.use_cases.process_stripe_webhook import ProcessStripeWebhookUseCase
from member_auth.domain.entities.user import User
from member_auth.shared.config import Settings


router = APIRouter()


@router.post("/billing/checkout-session", response_model=CheckoutSessionResponse)
def create_checkout_session(
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
    use_case: CreateCheckoutSessionUseCase = Depends(get_create_checkout_session_use_case),
):
    output = use_case.execute(
        CreateCheckoutSessionInput(
            user_id=current_user.id,
            success_url=f"{settings.app_url}/account/membership?success=true",
            cancel_url=f"{settings.app_url}/account/membership?canceled=true",
        )
    )
    return CheckoutSessionResponse(
        checkout_session_id=output.checkout_session_id,
        checkout_url=output.checkout_url,
    )


@router.post("/billing/portal", response_model=PortalSessionResponse)
def create_portal_session(
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
    use_case: CreatePortalSessionUseCase = Depends(get_create_portal_session_use_case),
):
    output = use_case.execute(
        CreatePortalSessionInput(
            user_id=current_user.id,
            return_url=f"{settings.app_url}/account/membership",
        )
    )
    return PortalSessionResponse(portal_url=output.portal_url)


@router.post(
    "/billing/webhook",
    response_model=StripeWebhookResponse,
    dependencies=[Depends(require_stripe_source_ip), Depends(rate_limit("stripe-webhook"))],
)
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
    use_case: ProcessStripeWebhookUseCase = Depends(get_process_stripe_webhook_use_case),
):
    payload = await request.body()
    output = await run_in_threadpool(
        use_case.execute,
        StripeWebhookInput(
            signature=stripe_signature or "",
            payload=payload,
        ),
    )
    return StripeWebhookResponse(
        event_type=output.event_type,
        handled=output.handled,
        duplicate=output.duplicate,
    )
