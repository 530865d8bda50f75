from __future__ import annotations

from typing import Protocol

from member_auth.application.dto.billing import ProviderRedirectSession, ProviderWebhookEvent


class PaymentProviderPort(Protocol):
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
        ...

    def create_portal_session(self, *, customer_id: str, return_url: str) -> ProviderRedirectSession:
        ...

    def find_customer_id_by_email(self, *, email: str) -> str | None:
        ...

    def cancel_subscription(self, *, subscription_id: str, prorate: bool) -> None:
        ...

    def verify_webhook(self, *, signature: str, payload: bytes) -> ProviderWebhookEvent:
        ...
