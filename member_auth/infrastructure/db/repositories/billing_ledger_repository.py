from __future__ import annotations

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.engine import Engine

from member_auth.application.ports.billing_ledger_port import BillingLedgerPort
from member_auth.infrastructure.db.errors import store_errors


class SqlBillingLedgerRepository(BillingLedgerPort):
    def __init__(self, engine: Engine):
        self._engine = engine

    def has_webhook_event(self, *, event_id: str) -> bool:
        sql = "SELECT 1 FROM public.webhook_events WHERE event_id = :event_id LIMIT 1"
        with store_errors("has_webhook_event"):
            with self._engine.connect() as conn:
                row = conn.execute(text(sql), {"event_id": event_id}).first()
        return row is not None

    def record_webhook_event(
        self,
        *,
        event_id: str,
        event_type: str,
        livemode: bool,
        received_at: datetime,
    ) -> bool:
        sql = """
            INSERT INTO public.webhook_events (event_id, event_type, livemode, received_at)
            VALUES (:event_id, :event_type, :livemode, :received_at)
            ON CONFLICT (event_id) DO NOTHING
        """
        with store_errors("record_webhook_event"):
            with self._engine.begin() as conn:
                result = conn.execute(
                    text(sql),
                    {
                        "event_id": event_id,
                        "event_type": event_type,
                        "livemode": livemode,
                        "received_at": received_at,
                    },
                )
        return result.rowcount == 1

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
        sql = """
            INSERT INTO public.payment_failures (
                id, subscription_id, customer_id, invoice_id, amount_due, currency, attempt_count, failed_at
            ) VALUES (
                :id, :subscription_id, :customer_id, :invoice_id, :amount_due, :currency, :attempt_count, :failed_at
            )
        """
        with store_errors("record_payment_failure"):
            with self._engine.begin() as conn:
                conn.execute(
                    text(sql),
                    {
                        "id": failure_id,
                        "subscription_id": subscription_id,
                        "customer_id": customer_id,
                        "invoice_id": invoice_id,
                        "amount_due": amount_due,
                        "currency": currency,
                        "attempt_count": attempt_count,
                        "failed_at": failed_at,
                    },
                )
