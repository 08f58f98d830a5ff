"""Typed errors for the draft generation and delivery pipeline.

Each error carries a machine-readable ``code`` and the HTTP status the API
layer answers with. Routers let these propagate; ``main.py`` renders them.
"""

import enum
from typing import Any, Optional


class OutreachError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}


class NotFound(OutreachError):
    def __init__(self, resource: str, resource_id: Any = None) -> None:
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} '{resource_id}' not found"
        super().__init__(message, code="NOT_FOUND", status_code=404)


# ============================================================================
# AI GENERATION
# ============================================================================


class ProviderUnavailable(OutreachError):
    """Provider has no credential configured; the user should pick another."""

    def __init__(self, provider: str) -> None:
        super().__init__(
            f'AI provider "{provider}" is not configured. Please choose a different provider.',
            code="PROVIDER_UNAVAILABLE",
            status_code=400,
            details={"provider": provider},
        )
        self.provider = provider


class ProviderError(OutreachError):
    """Transport, quota or upstream failure talking to an AI provider."""

    def __init__(
        self,
        provider: str,
        message: str,
        upstream_status: Optional[int] = None,
        retryable: bool = True,
    ) -> None:
        super().__init__(
            message,
            code="PROVIDER_ERROR",
            status_code=502,
            details={"provider": provider, "upstream_status": upstream_status},
        )
        self.provider = provider
        self.upstream_status = upstream_status
        self.retryable = retryable


class UnparsableResponse(OutreachError):
    """Model output held no recoverable subject/body signal."""

    def __init__(self, message: str = "Failed to parse AI response. Please try again.") -> None:
        super().__init__(message, code="UNPARSABLE_RESPONSE", status_code=502)


class GenerationFailure(OutreachError):
    """Draft generation failed; ``cause`` is the underlying pipeline error."""

    def __init__(self, cause: OutreachError) -> None:
        super().__init__(cause.message, code=cause.code, status_code=cause.status_code, details=cause.details)
        self.cause = cause


# ============================================================================
# MAILBOX
# ============================================================================


class DecryptionFailure(OutreachError):
    """Ciphertext could not be decrypted: rotated key or corrupted data."""

    def __init__(self) -> None:
        super().__init__("Failed to decrypt stored credential", code="DECRYPTION_FAILURE", status_code=500)


class ReauthRequired(OutreachError):
    """Mailbox credential is gone or invalid; the user must reconnect."""

    def __init__(self, message: str = "Gmail connection is no longer valid. Please reconnect Gmail in settings.") -> None:
        super().__init__(message, code="REAUTH_REQUIRED", status_code=409)


class MailboxErrorKind(str, enum.Enum):
    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    SERVER = "server"
    NETWORK = "network"

    @classmethod
    def from_status(cls, status_code: int) -> "MailboxErrorKind":
        if status_code == 401:
            return cls.UNAUTHORIZED
        if status_code == 403:
            return cls.FORBIDDEN
        if status_code == 404:
            return cls.NOT_FOUND
        if status_code == 429:
            return cls.RATE_LIMITED
        if status_code >= 500:
            return cls.SERVER
        return cls.BAD_REQUEST

    @property
    def retryable(self) -> bool:
        return self in (MailboxErrorKind.RATE_LIMITED, MailboxErrorKind.SERVER, MailboxErrorKind.NETWORK)


class MailboxApiError(OutreachError):
    """Failure response (or no response) from the mailbox provider's API."""

    def __init__(self, kind: MailboxErrorKind, message: str, upstream_status: Optional[int] = None) -> None:
        super().__init__(
            message,
            code=f"MAILBOX_{kind.name}",
            status_code=502,
            details={"kind": kind.value, "upstream_status": upstream_status},
        )
        self.kind = kind
        self.upstream_status = upstream_status


class TransportError(OutreachError):
    """Sending failed; the draft is marked FAILED and may be resent."""

    def __init__(self, message: str, retryable: bool = True) -> None:
        super().__init__(message, code="TRANSPORT_ERROR", status_code=502)
        self.retryable = retryable


class AlreadySent(OutreachError):
    def __init__(self, email_id: Any = None) -> None:
        super().__init__("Email has already been sent", code="ALREADY_SENT", status_code=409, details={"email_id": email_id})


class NoThread(OutreachError):
    """Draft has no provider thread to read or reply in."""

    def __init__(self, message: str = "This email does not have a Gmail thread associated") -> None:
        super().__init__(message, code="NO_THREAD", status_code=400)


# ============================================================================
# ACCESS
# ============================================================================


class RateLimitExceeded(OutreachError):
    def __init__(self, limit: int, window_seconds: int, retry_after: int) -> None:
        super().__init__(
            f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
            code="RATE_LIMITED",
            status_code=429,
            details={"limit": limit, "window_seconds": window_seconds, "retry_after": retry_after},
        )
        self.retry_after = retry_after


class UpgradeRequired(OutreachError):
    def __init__(self, message: str = "Free limit reached. Please upgrade to Pro for unlimited emails.") -> None:
        super().__init__(message, code="UPGRADE_REQUIRED", status_code=403, details={"requires_upgrade": True})
