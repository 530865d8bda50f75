from __future__ import annotations

from member_auth.application.dto.billing import CreatePortalSessionInput, CreatePortalSessionOutput
from member_auth.application.ports.payment_provider_port import PaymentProviderPort
from member_auth.application.services.membership_reconciler import MembershipReconciler
from member_auth.domain.exceptions import BillingError, NotFoundError


class CreatePortalSessionUseCase:
    def __init__(
        self,
        *,
        membership_reconciler: MembershipReconciler,
        payment_provider: PaymentProviderPort,
    ):
        self._membership_reconciler = membership_reconciler
        self._payment_provider = payment_provider

    def execute(self, command: CreatePortalSessionInput) -> CreatePortalSessionOutput:
        membership = self._membership_reconciler.get_membership(user_id=command.user_id)
        if membership is None:
            raise NotFoundError("User membership not found.")
        if not membership.stripe_customer_id:
            raise BillingError("No billing account exists for this user.")

        session = self._payment_provider.create_portal_session(
            customer_id=membership.stripe_customer_id,
            return_url=command.return_url,
        )
        return CreatePortalSessionOutput(portal_url=session.url)
