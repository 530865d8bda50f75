from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable
from uuid import uuid4

from member_auth.application.dto.billing import (
    InvoicePaymentFailedEventData,
    ProviderWebhookEvent,
    StripeWebhookInput,
    StripeWebhookOutput,
)
from member_auth.application.ports.accounts_port import AccountsPort
from member_auth.application.ports.billing_ledger_port import BillingLedgerPort
from member_auth.application.ports.mail_port import MailPort
from member_auth.application.ports.payment_provider_port import PaymentProviderPort
from member_auth.application.services.membership_reconciler import MembershipReconciler
from member_auth.domain.exceptions import BillingError
from member_auth.shared.clock import utcnow


logger = logging.getLogger(__name__)

SUBSCRIPTION_EVENTS = {
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
}
PAYMENT_FAILED_SUBJECT = "Action required: your payment failed"


def build_payment_failed_email(
    *,
    amount_due: int,
    currency: str | None,
    attempt_count: int,
    billing_url: str,
) -> tuple[str, str]:
    amount = f"{amount_due / 100:,.2f} {(currency or '').upper()}".strip()
    text = (
        "We could not process the payment for your subscription.\n\n"
        f"Amount due: {amount}\n"
        f"Payment attempts: {attempt_count}\n\n"
        f"Please update your payment method to keep your membership: {billing_url}\n\n"
        "If the payment cannot be collected, access to member content may be limited."
    )
    html = (
        "<h2>Your payment failed</h2>"
        "<p>We could not process the payment for your subscription.</p>"
        f"<p><strong>Amount due:</strong> {amount}<br>"
        f"<strong>Payment attempts:</strong> {attempt_count}</p>"
        f'<p><a href="{billing_url}">Update your payment method</a></p>'
        "<p>If the payment cannot be collected, access to member content may be limited.</p>"
    )
    return text, html


class ProcessStripeWebhookUseCase:
    """Applies one verified Stripe event.

    The event id is recorded only after the event has been applied, so a
    delivery that fails part way is applied again when Stripe retries it. A
    redelivery of a recorded id is acknowledged without touching any state.
    """

    def __init__(
        self,
        *,
        accounts_port: AccountsPort,
        payment_provider: PaymentProviderPort,
        billing_ledger: BillingLedgerPort,
        membership_reconciler: MembershipReconciler,
        mail: MailPort,
        app_url: str,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._accounts_port = accounts_port
        self._payment_provider = payment_provider
        self._billing_ledger = billing_ledger
        self._membership_reconciler = membership_reconciler
        self._mail = mail
        self._app_url = app_url.rstrip("/")
        self._clock = clock

    def execute(self, command: StripeWebhookInput) -> StripeWebhookOutput:
        if not command.signature:
            raise BillingError("Missing Stripe signature.")
        event = self._payment_provider.verify_webhook(signature=command.signature, payload=command.payload)

        if self._billing_ledger.has_webhook_event(event_id=event.event_id):
            logger.info("stripe_webhook: duplicate event_id=%s type=%s", event.event_id, event.event_type)
            return StripeWebhookOutput(event_type=event.event_type, handled=True, duplicate=True)

        handled = self._dispatch(event)

        is_new = self._billing_ledger.record_webhook_event(
            event_id=event.event_id,
            event_type=event.event_type,
            livemode=event.livemode,
            received_at=self._clock(),
        )
        if not is_new:
            logger.warning("stripe_webhook: concurrent_delivery event_id=%s", event.event_id)
        logger.info(
            "stripe_webhook: processed event_id=%s type=%s handled=%s",
            event.event_id,
            event.event_type,
            handled,
        )
        return StripeWebhookOutput(event_type=event.event_type, handled=handled)

    def _dispatch(self, event: ProviderWebhookEvent) -> bool:
        if event.event_type == "checkout.session.completed":
            checkout = event.checkout_completed
            if checkout is None or checkout.mode != "subscription":
                logger.info("stripe_webhook: checkout_skipped reason=not_subscription event_id=%s", event.event_id)
                return True
            if not checkout.user_id:
                logger.error("stripe_webhook: checkout_skipped reason=missing_user_id event_id=%s", event.event_id)
                return True
            self._membership_reconciler.link_checkout(
                user_id=checkout.user_id,
                customer_id=checkout.customer_id,
                subscription_id=checkout.subscription_id,
            )
            return True

        if event.event_type in SUBSCRIPTION_EVENTS:
            if event.subscription is None:
                raise BillingError("Stripe subscription event missing payload.")
            self._membership_reconciler.apply_subscription_event(event.subscription)
            return True

        if event.event_type == "invoice.payment_failed":
            if event.invoice_payment_failed is not None:
                self._handle_payment_failed(event.invoice_payment_failed)
            return True

        logger.info("stripe_webhook: unhandled type=%s event_id=%s", event.event_type, event.event_id)
        return False

    def _handle_payment_failed(self, invoice: InvoicePaymentFailedEventData) -> None:
        if not invoice.subscription_id:
            return
        logger.error(
            "stripe_webhook: payment_failed subscription_id=%s customer_id=%s attempt=%s",
            invoice.subscription_id,
            invoice.customer_id,
            invoice.attempt_count,
        )
        self._billing_ledger.record_payment_failure(
            failure_id=str(uuid4()),
            subscription_id=invoice.subscription_id,
            customer_id=invoice.customer_id,
            invoice_id=invoice.invoice_id,
            amount_due=invoice.amount_due,
            currency=invoice.currency,
            attempt_count=invoice.attempt_count,
            failed_at=self._clock(),
        )

        try:
            user = None
            if invoice.customer_id:
                user = self._accounts_port.get_user_by_stripe_customer_id(stripe_customer_id=invoice.customer_id)
            if user is None or user.is_deleted:
                return
            text, html = build_payment_failed_email(
                amount_due=invoice.amount_due,
                currency=invoice.currency,
                attempt_count=invoice.attempt_count,
                billing_url=f"{self._app_url}/account/subscription",
            )
            self._mail.send(to=user.email, subject=PAYMENT_FAILED_SUBJECT, text=text, html=html)
            logger.info("stripe_webhook: payment_failed_notice_sent user_id=%s", user.id)
        except Exception:
            logger.exception("stripe_webhook: payment_failed_notice_failed customer_id=%s", invoice.customer_id)
