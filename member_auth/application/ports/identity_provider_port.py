from __future__ import annotations

from typing import Protocol

from member_auth.application.dto.auth import ExternalIdentityInfo


class IdentityProviderPort(Protocol):
    def verify_id_token(self, *, id_token: str) -> ExternalIdentityInfo:
        ...
