from __future__ import annotations

from pydantic import BaseModel


class CheckoutSessionResponse(BaseModel):
    checkout_session_id: str
    checkout_url: str


class PortalSessionResponse(BaseModel):
    portal_url: str


class StripeWebhookResponse(BaseModel):
    event_type: str
    handled: bool
    duplicate: bool = False
