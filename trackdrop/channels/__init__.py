"""Channel abstraction layer for chat platforms

TelegramChannel is imported from trackdrop.channels.telegram so that the
pipeline can depend on the base types without pulling in the bot library.
"""

from .base import Channel, ChannelUser, ChannelStatus, PromptAction, InteractionEvent

__all__ = [
    "Channel",
    "ChannelUser",
    "ChannelStatus",
    "PromptAction",
    "InteractionEvent",
]
