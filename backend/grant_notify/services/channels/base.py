"""Protocol for channel adapters. Push and email return the same normalized result."""
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass
class RenderedMessage:
    """What the worker hands an adapter: event content plus deep-link data."""

    event_id: int
    event_type: str
    title: str
    body: str
    html_body: str | None = None
    link_path: str = "/"
    payload: dict[str, Any] = field(default_factory=dict)
    bcc: list[str] = field(default_factory=list)

    @property
    def tag(self) -> str:
        return f"{self.event_type}:{self.event_id}"


@dataclass
class SendResult:
    """Three-way outcome: ok, permanent failure, or (ok=False, permanent=False) transient failure."""

    ok: bool
    permanent: bool = False
    provider_message_id: str | None = None
    error_message: str | None = None
    status_code: int | None = None

    @classmethod
    def success(cls, provider_message_id: str | None = None, status_code: int | None = None) -> "SendResult":
        return cls(ok=True, provider_message_id=provider_message_id, status_code=status_code)

    @classmethod
    def transient(cls, error_message: str, status_code: int | None = None) -> "SendResult":
        return cls(ok=False, permanent=False, error_message=error_message, status_code=status_code)

    @classmethod
    def permanent_failure(cls, error_message: str, status_code: int | None = None) -> "SendResult":
        return cls(ok=False, permanent=True, error_message=error_message, status_code=status_code)


class ChannelAdapter(Protocol):
    """Interface for APNs, SMTP, etc. Same contract; only transport differs."""

    @property
    def channel(self) -> str:
        """Channel family this adapter serves ('push' or 'email')."""
        ...

    def is_configured(self) -> bool:
        """False when provider credentials are missing; the drain then reports config_missing."""
        ...

    def send(self, endpoint: str, message: RenderedMessage) -> SendResult:
        """
        Send one message to one endpoint (device token or email address).
        Must enforce its own timeout; timeouts come back as transient failures.
        """
        ...
