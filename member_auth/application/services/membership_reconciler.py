from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Literal

from member_auth.application.ports.accounts_port import AccountsPort
from member_auth.application.ports.payment_provider_port import PaymentProviderPort
from member_auth.domain.entities.subscription import (
    MembershipState,
    MembershipView,
    ProviderSubscriptionEvent,
    is_subscription_terminated,
    resolve_membership_state,
)
from member_auth.domain.entities.user import User
from member_auth.shared.clock import utcnow


logger = logging.getLogger(__name__)

AccessLevel = Literal["public", "paid"]


def _state_of(user: User) -> MembershipState:
    return MembershipState(
        membership=user.membership,
        stripe_customer_id=user.stripe_customer_id,
        stripe_subscription_id=user.stripe_subscription_id,
        payment_status=user.payment_status,
    )


class MembershipReconciler:
    """Sole writer of the membership and Stripe fields on a user.

    The payment provider is the source of truth: events are applied
    last-write-wins and an event that would not change the stored state is
    skipped, so duplicate deliveries are no-ops.
    """

    def __init__(
        self,
        *,
        accounts_port: AccountsPort,
        payment_provider: PaymentProviderPort | None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._accounts_port = accounts_port
        self._payment_provider = payment_provider
        self._clock = clock

    def apply_subscription_event(self, event: ProviderSubscriptionEvent) -> bool:
        user = self._find_user_for_event(event)
        if user is None:
            logger.warning(
                "membership_reconciler: user_not_found event=%s subscription_id=%s customer_id=%s",
                event.event_type,
                event.subscription_id,
                event.customer_id,
            )
            return False
        if user.is_deleted:
            logger.info("membership_reconciler: skip_deleted_user user_id=%s event=%s", user.id, event.event_type)
            return False

        terminating = event.event_type == "customer.subscription.deleted" or is_subscription_terminated(event.status)
        if (
            terminating
            and user.stripe_subscription_id
            and user.stripe_subscription_id != event.subscription_id
        ):
            logger.info(
                "membership_reconciler: skip_stale_cancel user_id=%s current=%s event_subscription=%s",
                user.id,
                user.stripe_subscription_id,
                event.subscription_id,
            )
            return False

        current = _state_of(user)
        target = resolve_membership_state(current=current, event=event)
        if target == current:
            logger.debug("membership_reconciler: no_change user_id=%s event=%s", user.id, event.event_type)
            return False

        self._write(user_id=user.id, state=target)
        logger.info(
            "membership_reconciler: membership_updated user_id=%s membership=%s payment_status=%s event=%s",
            user.id,
            target.membership,
            target.payment_status,
            event.event_type,
        )
        return True

    def link_checkout(self, *, user_id: str, customer_id: str | None, subscription_id: str | None) -> bool:
        user = self._accounts_port.get_user_by_id(user_id=user_id)
        if user is None or user.is_deleted:
            logger.error("membership_reconciler: checkout_user_not_found user_id=%s", user_id)
            return False

        if user.is_paid and user.stripe_subscription_id:
            if user.stripe_subscription_id == subscription_id:
                return False
            logger.warning(
                "membership_reconciler: duplicate_subscription_attempt user_id=%s existing=%s new=%s",
                user_id,
                user.stripe_subscription_id,
                subscription_id,
            )
            return False

        self._write(
            user_id=user.id,
            state=MembershipState(
                membership="paid",
                stripe_customer_id=customer_id or user.stripe_customer_id,
                stripe_subscription_id=subscription_id,
                payment_status="active",
            ),
        )
        logger.info("membership_reconciler: upgraded_to_paid user_id=%s", user_id)
        return True

    def link_customer(self, *, user: User, customer_id: str) -> None:
        if user.stripe_customer_id == customer_id:
            return
        current = _state_of(user)
        self._write(
            user_id=user.id,
            state=MembershipState(
                membership=current.membership,
                stripe_customer_id=customer_id,
                stripe_subscription_id=current.stripe_subscription_id,
                payment_status=current.payment_status,
            ),
        )

    def cancel_for_deletion(self, *, user: User) -> bool:
        """Cancel immediately, without proration. Provider errors never propagate."""
        if not user.stripe_subscription_id:
            return False
        if self._payment_provider is None:
            logger.error(
                "membership_reconciler: cancel_skipped reason=provider_not_configured user_id=%s subscription_id=%s",
                user.id,
                user.stripe_subscription_id,
            )
            return False
        try:
            self._payment_provider.cancel_subscription(
                subscription_id=user.stripe_subscription_id,
                prorate=False,
            )
        except Exception:
            logger.exception(
                "membership_reconciler: cancel_failed user_id=%s subscription_id=%s",
                user.id,
                user.stripe_subscription_id,
            )
            return False
        logger.info(
            "membership_reconciler: subscription_canceled user_id=%s subscription_id=%s",
            user.id,
            user.stripe_subscription_id,
        )
        return True

    def get_membership(self, *, user_id: str) -> MembershipView | None:
        user = self._accounts_port.get_user_by_id(user_id=user_id)
        if user is None or user.is_deleted:
            return None
        return MembershipView(
            user_id=user.id,
            email=user.email,
            membership=user.membership or "free",
            membership_updated_at=user.membership_updated_at,
            stripe_customer_id=user.stripe_customer_id,
            stripe_subscription_id=user.stripe_subscription_id,
            payment_status=user.payment_status,
        )

    @staticmethod
    def has_access(user: User | None, required_level: AccessLevel) -> bool:
        if required_level == "public":
            return True
        return user is not None and not user.is_deleted and user.is_paid

    def _find_user_for_event(self, event: ProviderSubscriptionEvent) -> User | None:
        if event.user_id:
            user = self._accounts_port.get_user_by_id(user_id=event.user_id)
            if user is not None:
                return user
        user = self._accounts_port.get_user_by_stripe_subscription_id(
            stripe_subscription_id=event.subscription_id,
        )
        if user is not None:
            return user
        if event.customer_id:
            return self._accounts_port.get_user_by_stripe_customer_id(stripe_customer_id=event.customer_id)
        return None

    def _write(self, *, user_id: str, state: MembershipState) -> None:
        self._accounts_port.update_user_membership(
            user_id=user_id,
            membership=state.membership,
            stripe_customer_id=state.stripe_customer_id,
            stripe_subscription_id=state.stripe_subscription_id,
            payment_status=state.payment_status,
            updated_at=self._clock(),
        )
