from __future__ import annotations

import logging

import httpx

from member_auth.application.ports.mail_port import MailPort
from member_auth.domain.exceptions import UpstreamUnavailableError
from member_auth.shared.logging_config import mask_email


logger = logging.getLogger(__name__)


class SendGridMailClient(MailPort):
    BASE_URL = "https://api.sendgrid.com/v3"

    def __init__(
        self,
        *,
        api_key: str,
        from_email: str,
        timeout_seconds: float = 10.0,
        http_client: httpx.Client | None = None,
    ):
        self._from_email = from_email
        self._http = http_client or httpx.Client(
            base_url=self.BASE_URL,
            timeout=timeout_seconds,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )

    def send(self, *, to: str, subject: str, text: str, html: str) -> None:
        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self._from_email},
            "subject": subject,
            "content": [
                {"type": "text/plain", "value": text},
                {"type": "text/html", "value": html},
            ],
        }
        try:
            response = self._http.post("/mail/send", json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "sendgrid: send_rejected status=%s to=%s",
                exc.response.status_code,
                mask_email(to),
            )
            raise UpstreamUnavailableError("Mail delivery failed.") from exc
        except httpx.HTTPError as exc:
            logger.error("sendgrid: send_failed error=%s to=%s", type(exc).__name__, mask_email(to))
            raise UpstreamUnavailableError("Mail delivery failed.") from exc
        logger.info("sendgrid: sent to=%s", mask_email(to))
