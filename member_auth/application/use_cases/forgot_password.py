from __future__ import annotations

import logging

from member_auth.application.dto.auth import ForgotPasswordInput, ForgotPasswordOutput
from member_auth.application.ports.accounts_port import AccountsPort
from member_auth.application.ports.mail_port import MailPort
from member_auth.application.services.reset_tokens import ResetTokenService
from member_auth.domain.exceptions import InternalError, ServiceUnavailableError
from member_auth.shared.logging_config import mask_email

from .auth_common import require_valid_email


logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = "If an account exists with that email, you will receive a password reset link shortly."
RESET_EMAIL_SUBJECT = "Reset your password"


def build_reset_email(*, reset_url: str) -> tuple[str, str]:
    text = (
        "We received a request to reset your password.\n\n"
        f"Open this link to choose a new password: {reset_url}\n\n"
        "The link expires in one hour. If you did not ask for a reset, you can ignore this email."
    )
    html = (
        "<p>We received a request to reset your password.</p>"
        f'<p><a href="{reset_url}">Choose a new password</a></p>'
        "<p>The link expires in one hour. If you did not ask for a reset, you can ignore this email.</p>"
    )
    return text, html


class ForgotPasswordUseCase:
    """Starts a password reset.

    The answer is the same for unknown emails, password-less accounts and
    mail delivery failures. Only a record store failure changes it.
    """

    def __init__(
        self,
        *,
        accounts_port: AccountsPort,
        reset_tokens: ResetTokenService,
        mail: MailPort,
        app_url: str,
    ):
        self._accounts_port = accounts_port
        self._reset_tokens = reset_tokens
        self._mail = mail
        self._app_url = app_url.rstrip("/")

    def execute(self, command: ForgotPasswordInput) -> ForgotPasswordOutput:
        email = require_valid_email(command.email)
        output = ForgotPasswordOutput(message=FORGOT_PASSWORD_MESSAGE)

        try:
            user = self._accounts_port.get_user_by_email(email=email)
            if user is None or user.is_deleted:
                logger.info("forgot_password: skipped reason=unknown_email email=%s", mask_email(email))
                return output
            if not user.has_password:
                logger.info("forgot_password: skipped reason=no_password user_id=%s", user.id)
                return output

            token = self._reset_tokens.generate()
            self._reset_tokens.save(email=email, token=token)
        except ServiceUnavailableError as exc:
            logger.error("forgot_password: store_failed email=%s", mask_email(email))
            raise InternalError() from exc

        text, html = build_reset_email(reset_url=f"{self._app_url}/reset-password?token={token}")
        try:
            self._mail.send(to=email, subject=RESET_EMAIL_SUBJECT, text=text, html=html)
        except Exception:
            logger.exception("forgot_password: mail_failed user_id=%s", user.id)
            return output

        logger.info("forgot_password: reset_link_sent user_id=%s", user.id)
        return output
