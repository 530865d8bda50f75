from __future__ import annotations

import logging

from member_auth.application.dto.billing import CreateCheckoutSessionInput, CreateCheckoutSessionOutput
from member_auth.application.ports.accounts_port import AccountsPort
from member_auth.application.ports.payment_provider_port import PaymentProviderPort
from member_auth.application.services.membership_reconciler import MembershipReconciler
from member_auth.domain.exceptions import BillingError, InternalError, NotFoundError, UpstreamUnavailableError


logger = logging.getLogger(__name__)


class CreateCheckoutSessionUseCase:
    def __init__(
        self,
        *,
        accounts_port: AccountsPort,
        payment_provider: PaymentProviderPort,
        membership_reconciler: MembershipReconciler,
        price_id: str,
    ):
        self._accounts_port = accounts_port
        self._payment_provider = payment_provider
        self._membership_reconciler = membership_reconciler
        self._price_id = price_id

    def execute(self, command: CreateCheckoutSessionInput) -> CreateCheckoutSessionOutput:
        if not self._price_id:
            logger.error("create_checkout_session: price_id_not_configured")
            raise InternalError()

        user = self._accounts_port.get_user_by_id(user_id=command.user_id)
        if user is None or user.is_deleted:
            raise NotFoundError("User not found.")
        if user.is_paid and user.stripe_subscription_id:
            raise BillingError("You already have an active membership.")

        customer_id = user.stripe_customer_id
        if not customer_id:
            try:
                customer_id = self._payment_provider.find_customer_id_by_email(email=user.email)
            except UpstreamUnavailableError:
                # Treated as a new customer; checkout creates one.
                logger.warning("create_checkout_session: customer_lookup_failed user_id=%s", user.id)
                customer_id = None
            if customer_id:
                self._membership_reconciler.link_customer(user=user, customer_id=customer_id)

        result = self._payment_provider.create_checkout_session(
            user_id=user.id,
            price_id=self._price_id,
            success_url=command.success_url,
            cancel_url=command.cancel_url,
            customer_id=customer_id,
            customer_email=None if customer_id else user.email,
        )
        logger.info("create_checkout_session: created user_id=%s session_id=%s", user.id, result.id)
        return CreateCheckoutSessionOutput(
            checkout_session_id=result.id,
            checkout_url=result.url,
        )
