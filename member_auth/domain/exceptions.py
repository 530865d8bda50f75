from __future__ import annotations


class DomainError(Exception):
    """Base for every error the service reports to callers."""

    kind = "internal_error"
    status_code = 500
    public_message = "An unexpected error occurred."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.public_message)

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(DomainError):
    """Malformed or unacceptable input."""

    kind = "validation_error"
    status_code = 400
    public_message = "Invalid input."

    def __init__(self, message: str | None = None, *, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = list(errors or [])


class WeakPasswordError(ValidationError):
    kind = "weak_password"


class InvalidResetTokenError(ValidationError):
    """Token missing, used or expired. Deliberately indistinguishable."""

    kind = "invalid_reset_token"
    public_message = "The reset token is invalid or has expired."


class UnauthorizedError(DomainError):
    kind = "unauthorized"
    status_code = 401
    public_message = "Authentication required."


class InvalidCredentialsError(UnauthorizedError):
    kind = "invalid_credentials"
    public_message = "Invalid credentials."


class GoogleTokenValidationError(UnauthorizedError):
    kind = "invalid_identity_token"


class ForbiddenError(DomainError):
    kind = "forbidden"
    status_code = 403
    public_message = "You are not allowed to perform this action."


class NotFoundError(DomainError):
    kind = "not_found"
    status_code = 404
    public_message = "Resource not found."


class ConflictError(DomainError):
    kind = "conflict"
    status_code = 400
    public_message = "Resource already exists."


class EmailAlreadyExistsError(ConflictError):
    kind = "email_already_exists"
    public_message = "This email address is already registered."


class RateLimitedError(DomainError):
    kind = "rate_limited"
    status_code = 429
    public_message = "Too many requests. Please try again later."

    def __init__(
        self,
        message: str | None = None,
        *,
        limit: int = 0,
        reset_at_epoch_seconds: int = 0,
        retry_after_seconds: int = 0,
    ):
        super().__init__(message)
        self.limit = limit
        self.reset_at_epoch_seconds = reset_at_epoch_seconds
        self.retry_after_seconds = retry_after_seconds


class UpstreamUnavailableError(DomainError):
    """Payment or mail provider failure."""

    kind = "upstream_unavailable"
    status_code = 502
    public_message = "An upstream provider is unavailable."


class BillingError(UpstreamUnavailableError):
    kind = "billing_error"
    status_code = 400
    public_message = "Billing request failed."


class ServiceUnavailableError(DomainError):
    """Record store unreachable or timed out. Safe to retry."""

    kind = "service_unavailable"
    status_code = 503
    public_message = "The service is temporarily unavailable. Please retry."


class InternalError(DomainError):
    kind = "internal_error"
    status_code = 500
