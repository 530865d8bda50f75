from __future__ import annotations

from dataclasses import dataclass

from member_auth.domain.entities.subscription import ProviderSubscriptionEvent


@dataclass(frozen=True)
class CreateCheckoutSessionInput:
    user_id: str
    success_url: str
    cancel_url: str


@dataclass(frozen=True)
class CreateCheckoutSessionOutput:
    checkout_session_id: str
    checkout_url: str


@dataclass(frozen=True)
class CreatePortalSessionInput:
    user_id: str
    return_url: str


@dataclass(frozen=True)
class CreatePortalSessionOutput:
    portal_url: str


@dataclass(frozen=True)
class StripeWebhookInput:
    signature: str
    payload: bytes


@dataclass(frozen=True)
class StripeWebhookOutput:
    event_type: str
    handled: bool
    duplicate: bool = False


@dataclass(frozen=True)
class ProviderRedirectSession:
    id: str
    url: str


@dataclass(frozen=True)
class CheckoutCompletedEventData:
    mode: str | None
    user_id: str | None
    customer_id: str | None
    subscription_id: str | None


@dataclass(frozen=True)
class InvoicePaymentFailedEventData:
    invoice_id: str | None
    subscription_id: str | None
    customer_id: str | None
    amount_due: int
    currency: str | None
    attempt_count: int


@dataclass(frozen=True)
class ProviderWebhookEvent:
    event_id: str
    event_type: str
    livemode: bool
    subscription: ProviderSubscriptionEvent | None = None
    checkout_completed: CheckoutCompletedEventData | None = None
    invoice_payment_failed: InvoicePaymentFailedEventData | None = None
