"""Error taxonomy for webhook registration, relay and channel reads.

Every error carries the HTTP status the route layer answers with.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for all recoverable relay errors."""

    status_code = 500


class InvalidFormatError(RelayError):
    """Raised when a URL does not carry the Discord webhook prefix."""

    status_code = 400

    def __init__(self) -> None:
        super().__init__("Invalid webhook URL format")


class TooManyAttemptsError(RelayError):
    """Raised when the same URL is validated again inside the cooldown window."""

    status_code = 429

    def __init__(self) -> None:
        super().__init__(
            "Too many attempts. Please wait a few seconds and try again.",
        )


class DuplicateEndpointError(RelayError):
    """Raised when a URL is already present in the registry."""

    status_code = 400

    def __init__(self) -> None:
        super().__init__("Webhook already exists")


class InvalidWebhookError(RelayError):
    """Raised when Discord rejects a candidate webhook URL."""

    status_code = 429

    def __init__(self, reason: str, remote_status: int | None = None) -> None:
        self.remote_status = remote_status
        super().__init__(f"Webhook validation failed: {reason}")


class RateLimitedError(RelayError):
    """Raised when Discord throttles validation beyond the allowed wait."""

    status_code = 429

    def __init__(self, retry_after: float | None) -> None:
        self.retry_after = retry_after
        shown = "unknown" if retry_after is None else f"{retry_after:g}"
        super().__init__(
            f"Webhook validation failed: Rate limited by Discord. "
            f"Retry after {shown} s.",
        )


class EndpointNotFoundError(RelayError):
    status_code = 404

    def __init__(self, endpoint_id: str) -> None:
        self.endpoint_id = endpoint_id
        super().__init__("Webhook not found")


class EmptyMessageError(RelayError):
    status_code = 400

    def __init__(self) -> None:
        super().__init__("Content or file is required")


class TooManyAttachmentsError(RelayError):
    status_code = 400

    def __init__(self, limit: int) -> None:
        super().__init__(f"At most {limit} files can be sent at once")


class AttachmentTooLargeError(RelayError):
    status_code = 413

    def __init__(self, filename: str, limit: int) -> None:
        self.filename = filename
        super().__init__(
            f"File '{filename}' exceeds the {limit // (1024 * 1024)} MiB limit",
        )


class RelayFailedError(RelayError):
    """Raised when Discord does not accept a relayed message."""

    status_code = 500

    def __init__(self, reason: str, remote_status: int | None = None, body: str = "") -> None:
        self.remote_status = remote_status
        self.body = body
        super().__init__(f"Failed to send message to Discord: {reason}")


class ChannelNotFoundError(RelayError):
    status_code = 404

    def __init__(self, message: str = "Channel not found") -> None:
        super().__init__(message)


class InvalidChannelError(ChannelNotFoundError):
    """Raised for malformed channel ids and channels without text."""

    status_code = 400

    def __init__(self) -> None:
        super().__init__("Invalid channel")


class ForbiddenError(RelayError):
    status_code = 403

    def __init__(self) -> None:
        super().__init__("Missing permissions")


class FetchFailedError(RelayError):
    status_code = 500

    def __init__(self, reason: str) -> None:
        super().__init__(f"Failed to fetch messages: {reason}")
