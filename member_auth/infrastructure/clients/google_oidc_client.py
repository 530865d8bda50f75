from __future__ import annotations

import logging

from google.auth.transport import requests
from google.oauth2 import id_token

from member_auth.application.dto.auth import ExternalIdentityInfo
from member_auth.application.ports.identity_provider_port import IdentityProviderPort
from member_auth.domain.exceptions import GoogleTokenValidationError


logger = logging.getLogger(__name__)

GOOGLE_ISSUERS = {"accounts.google.com", "https://accounts.google.com"}


class GoogleOidcClient(IdentityProviderPort):
    def __init__(self, *, client_id: str, clock_skew_seconds: int = 10):
        self._client_id = client_id
        self._clock_skew_seconds = clock_skew_seconds

    def verify_id_token(self, *, id_token: str) -> ExternalIdentityInfo:
        if not id_token:
            raise GoogleTokenValidationError("Google id_token is required.")
        try:
            claims = id_token_verify(
                token=id_token,
                audience=self._client_id,
                clock_skew_seconds=self._clock_skew_seconds,
            )
        except ValueError as exc:
            logger.info("google_oidc: token_rejected detail=%s", exc)
            raise GoogleTokenValidationError("Invalid Google id_token.") from exc

        if claims.get("iss") not in GOOGLE_ISSUERS:
            raise GoogleTokenValidationError("Google id_token has an unexpected issuer.")

        email = claims.get("email")
        subject = claims.get("sub")
        if not email or not subject:
            raise GoogleTokenValidationError("Google id_token missing required claims.")

        verified_claim = claims.get("email_verified", False)
        if isinstance(verified_claim, str):
            email_verified = verified_claim.lower() == "true"
        else:
            email_verified = bool(verified_claim)

        name = claims.get("name")
        return ExternalIdentityInfo(
            subject=str(subject),
            email=str(email),
            email_verified=email_verified,
            name=name if isinstance(name, str) else None,
        )


def id_token_verify(*, token: str, audience: str, clock_skew_seconds: int) -> dict:
    return id_token.verify_oauth2_token(
        token,
        requests.Request(),
        audience,
        clock_skew_in_seconds=clock_skew_seconds,
    )
