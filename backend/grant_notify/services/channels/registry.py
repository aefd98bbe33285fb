"""Registry of channel adapters. One adapter per channel family."""
import logging

from grant_notify.core.constants import CHANNEL_EMAIL, CHANNEL_PUSH
from grant_notify.services.channels.base import ChannelAdapter

logger = logging.getLogger(__name__)

_adapters: dict[str, ChannelAdapter] = {}


def register(channel: str, adapter: ChannelAdapter) -> None:
    """Register (or replace) the adapter for a channel ('push', 'email')."""
    _adapters[channel] = adapter
    logger.info("Registered channel adapter: %s -> %s", channel, type(adapter).__name__)


def get_adapter(channel: str) -> ChannelAdapter:
    """Get adapter by channel. Raises KeyError if unknown."""
    if channel not in _adapters:
        raise KeyError(f"Unknown channel: {channel}. Available: {list(_adapters.keys())}")
    return _adapters[channel]


def list_channels() -> list[str]:
    """List registered channels."""
    return list(_adapters.keys())


def _init_registry() -> None:
    from grant_notify.services.channels.email import SmtpEmailAdapter
    from grant_notify.services.channels.push import ApnsPushAdapter

    register(CHANNEL_PUSH, ApnsPushAdapter())
    register(CHANNEL_EMAIL, SmtpEmailAdapter())


# Register built-in adapters on first import
_init_registry()
