from __future__ import annotations

import json
import logging
from typing import Any

import stripe

from member_auth.application.dto.billing import (
    CheckoutCompletedEventData,
    InvoicePaymentFailedEventData,
    ProviderRedirectSession,
    ProviderWebhookEvent,
)
from member_auth.application.ports.payment_provider_port import PaymentProviderPort
from member_auth.domain.entities.subscription import ProviderSubscriptionEvent
from member_auth.domain.exceptions import BillingError, UpstreamUnavailableError


logger = logging.getLogger(__name__)


def _provider_error(action: str, exc: Exception) -> Exception:
    logger.error("stripe_client: %s_failed error=%s", action, type(exc).__name__)
    if isinstance(exc, stripe.InvalidRequestError):
        return BillingError(f"Stripe rejected the {action} request.")
    return UpstreamUnavailableError("The payment provider is unavailable.")


class StripeClient(PaymentProviderPort):
    def __init__(
        self,
        *,
        secret_key: str,
        webhook_secret: str,
        timeout_seconds: float = 10.0,
        max_network_retries: int = 2,
    ):
        stripe.api_key = secret_key
        stripe.max_network_retries = max_network_retries
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout_seconds)
        self._webhook_secret = webhook_secret

    def create_checkout_session(
        self,
        *,
        user_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        customer_id: str | None,
        customer_email: str | None,
    ) -> ProviderRedirectSession:
        payload: dict = {
            "mode": "subscription",
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "client_reference_id": user_id,
            "metadata": {"user_id": user_id},
            "subscription_data": {"metadata": {"user_id": user_id}},
            "allow_promotion_codes": True,
            "billing_address_collection": "required",
        }
        if customer_id:
            payload["customer"] = customer_id
        elif customer_email:
            payload["customer_email"] = customer_email

        try:
            session = stripe.checkout.Session.create(**payload)
        except stripe.StripeError as exc:
            raise _provider_error("checkout", exc) from exc

        session_id = getattr(session, "id", None)
        session_url = getattr(session, "url", None)
        if not session_id or not session_url:
            raise UpstreamUnavailableError("Stripe checkout session response is incomplete.")
        return ProviderRedirectSession(id=str(session_id), url=str(session_url))

    def create_portal_session(self, *, customer_id: str, return_url: str) -> ProviderRedirectSession:
        try:
            session = stripe.billing_portal.Session.create(customer=customer_id, return_url=return_url)
        except stripe.StripeError as exc:
            raise _provider_error("portal", exc) from exc
        return ProviderRedirectSession(id=str(session.id), url=str(session.url))

    def find_customer_id_by_email(self, *, email: str) -> str | None:
        try:
            customers = stripe.Customer.list(email=email, limit=1)
        except stripe.StripeError as exc:
            raise _provider_error("customer_lookup", exc) from exc
        if not customers.data:
            return None
        return str(customers.data[0].id)

    def cancel_subscription(self, *, subscription_id: str, prorate: bool) -> None:
        try:
            stripe.Subscription.cancel(subscription_id, prorate=prorate)
        except stripe.StripeError as exc:
            raise _provider_error("cancel", exc) from exc

    def verify_webhook(self, *, signature: str, payload: bytes) -> ProviderWebhookEvent:
        try:
            stripe.Webhook.construct_event(payload=payload, sig_header=signature, secret=self._webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as exc:
            logger.warning("stripe_client: webhook_rejected error=%s", type(exc).__name__)
            raise BillingError("Invalid Stripe webhook signature.") from exc

        # The signature covers the raw body; parse it as plain JSON from here on.
        return parse_webhook_event(json.loads(payload))


def _metadata_user_id(data_object: dict[str, Any]) -> str | None:
    metadata = data_object.get("metadata") or {}
    value = metadata.get("user_id") or metadata.get("userId")
    return str(value) if value else None


def _id_of(value: Any) -> str | None:
    """Stripe fields may hold an id or an expanded object."""
    if value is None:
        return None
    if isinstance(value, dict):
        value = value.get("id")
    return str(value) if value else None


def parse_webhook_event(event: dict[str, Any]) -> ProviderWebhookEvent:
    event_id = str(event.get("id", ""))
    event_type = str(event.get("type", ""))
    livemode = bool(event.get("livemode", False))
    data_object = (event.get("data") or {}).get("object") or {}

    if event_type.startswith("customer.subscription."):
        return ProviderWebhookEvent(
            event_id=event_id,
            event_type=event_type,
            livemode=livemode,
            subscription=ProviderSubscriptionEvent(
                event_type=event_type,
                subscription_id=str(data_object.get("id")),
                customer_id=_id_of(data_object.get("customer")),
                status=str(data_object.get("status", "")),
                user_id=_metadata_user_id(data_object),
            ),
        )

    if event_type == "checkout.session.completed":
        return ProviderWebhookEvent(
            event_id=event_id,
            event_type=event_type,
            livemode=livemode,
            checkout_completed=CheckoutCompletedEventData(
                mode=data_object.get("mode"),
                user_id=_metadata_user_id(data_object) or data_object.get("client_reference_id"),
                customer_id=_id_of(data_object.get("customer")),
                subscription_id=_id_of(data_object.get("subscription")),
            ),
        )

    if event_type == "invoice.payment_failed":
        return ProviderWebhookEvent(
            event_id=event_id,
            event_type=event_type,
            livemode=livemode,
            invoice_payment_failed=InvoicePaymentFailedEventData(
                invoice_id=_id_of(data_object.get("id")),
                subscription_id=_id_of(data_object.get("subscription")),
                customer_id=_id_of(data_object.get("customer")),
                amount_due=int(data_object.get("amount_due") or 0),
                currency=data_object.get("currency"),
                attempt_count=int(data_object.get("attempt_count") or 0),
            ),
        )

    return ProviderWebhookEvent(event_id=event_id, event_type=event_type, livemode=livemode)
