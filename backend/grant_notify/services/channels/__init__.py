"""
Channel adapters: APNs push and SMTP email.
Each adapter talks to its transport in its own way but returns the same SendResult
so the delivery worker's retry state machine stays provider-agnostic.
"""
from grant_notify.services.channels.base import ChannelAdapter, RenderedMessage, SendResult
from grant_notify.services.channels.registry import get_adapter, list_channels, register

__all__ = [
    "ChannelAdapter",
    "RenderedMessage",
    "SendResult",
    "get_adapter",
    "list_channels",
    "register",
]
