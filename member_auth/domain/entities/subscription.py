from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal


SubscriptionStatus = Literal[
    "trialing",
    "active",
    "past_due",
    "canceled",
    "unpaid",
    "incomplete",
    "incomplete_expired",
]


@dataclass(frozen=True)
class ProviderSubscriptionEvent:
    event_type: str
    subscription_id: str
    customer_id: str | None
    status: str
    user_id: str | None = None


@dataclass(frozen=True)
class MembershipState:
    membership: str
    stripe_customer_id: str | None
    stripe_subscription_id: str | None
    payment_status: str | None


def is_subscription_active(status: str) -> bool:
    return status in {"active", "trialing"}


def is_subscription_terminated(status: str) -> bool:
    return status in {"canceled", "unpaid", "incomplete_expired"}


def resolve_membership_state(
    *,
    current: MembershipState,
    event: ProviderSubscriptionEvent,
) -> MembershipState:
    """Target membership fields after applying one provider event.

    ``past_due`` keeps the paid tier while the provider retries the charge.
    Statuses with no tier meaning (``incomplete``) leave the state untouched.
    """
    customer_id = event.customer_id or current.stripe_customer_id

    if event.event_type == "customer.subscription.deleted" or is_subscription_terminated(event.status):
        status = event.status if is_subscription_terminated(event.status) else "canceled"
        return MembershipState(
            membership="free",
            stripe_customer_id=customer_id,
            stripe_subscription_id=None,
            payment_status=status,
        )

    if is_subscription_active(event.status):
        return MembershipState(
            membership="paid",
            stripe_customer_id=customer_id,
            stripe_subscription_id=event.subscription_id,
            payment_status="active",
        )

    if event.status == "past_due":
        return MembershipState(
            membership="paid",
            stripe_customer_id=customer_id,
            stripe_subscription_id=event.subscription_id,
            payment_status="past_due",
        )

    return current


@dataclass(frozen=True)
class MembershipView:
    user_id: str
    email: str
    membership: str
    membership_updated_at: datetime | None
    stripe_customer_id: str | None
    stripe_subscription_id: str | None
    payment_status: str | None
