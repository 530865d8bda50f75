from __future__ import annotations

from member_auth.application.services.membership_reconciler import MembershipReconciler
from member_auth.domain.entities.subscription import MembershipView
from member_auth.domain.exceptions import NotFoundError


class GetMembershipUseCase:
    def __init__(self, *, membership_reconciler: MembershipReconciler):
        self._membership_reconciler = membership_reconciler

    def execute(self, *, user_id: str) -> MembershipView:
        membership = self._membership_reconciler.get_membership(user_id=user_id)
        if membership is None:
            raise NotFoundError("User membership not found.")
        return membership
