from __future__ import annotations

from datetime import datetime
from typing import Protocol


class BillingLedgerPort(Protocol):
    def has_webhook_event(self, *, event_id: str) -> bool:
        ...

    def record_webhook_event(
        self,
        *,
        event_id: str,
        event_type: str,
        livemode: bool,
        received_at: datetime,
    ) -> bool:
        """Returns False when the event id was already recorded."""
        ...

    def record_payment_failure(
        self,
        *,
        failure_id: str,
        subscription_id: str,
        customer_id: str | None,
        invoice_id: str | None,
        amount_due: int,
        currency: str | None,
        attempt_count: int,
        failed_at: datetime,
    ) -> None:
        ...
