"""Base channel abstraction for chat platforms"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Callable
from enum import Enum

logger = logging.getLogger(__name__)


class ChannelStatus(Enum):
    """Channel connection status"""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass
class ChannelUser:
    """User information from a channel"""
    id: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    display_name: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def full_name(self) -> str:
        """Get full name"""
        if self.display_name:
            return self.display_name
        parts = []
        if self.first_name:
            parts.append(self.first_name)
        if self.last_name:
            parts.append(self.last_name)
        return " ".join(parts) if parts else self.username or self.id

    @property
    def mention(self) -> str:
        """Name suitable for a plain-text mention"""
        if self.username:
            return f"@{self.username}"
        return self.full_name


@dataclass(frozen=True)
class PromptAction:
    """A button on an interactive prompt"""
    label: str
    token: str
    style: str = "default"


@dataclass
class InteractionEvent:
    """A user pressed a prompt button"""
    user: ChannelUser
    token: str
    chat_id: Optional[str] = None
    message_id: Optional[str] = None


class Channel(ABC):
    """Base class for all chat channels

    The upload pipeline only talks to this interface: plain messages,
    interactive prompts, message deletion and "interaction" events.
    """

    def __init__(self, channel_name: str, config: Dict[str, Any]):
        """Initialize channel

        Args:
            channel_name: Name of the channel (e.g., 'telegram')
            config: Channel-specific configuration
        """
        self.channel_name = channel_name
        self.config = config
        self.status = ChannelStatus.DISCONNECTED
        self.event_handlers: Dict[str, List[Callable]] = {}

    @abstractmethod
    async def start(self):
        """Start the channel connection"""
        pass

    @abstractmethod
    async def stop(self):
        """Stop the channel connection gracefully"""
        pass

    @abstractmethod
    async def send_message(
        self,
        chat_id: str,
        content: str,
        reply_to: Optional[str] = None,
        **kwargs
    ) -> bool:
        """Send a message to a chat

        Returns:
            True if sent successfully, False otherwise
        """
        pass

    @abstractmethod
    async def send_prompt(
        self,
        chat_id: str,
        content: str,
        actions: List[PromptAction],
    ) -> Optional[str]:
        """Send a message carrying one button per action

        Returns:
            Message ID of the prompt, or None if it could not be sent
        """
        pass

    @abstractmethod
    async def delete_message(self, chat_id: str, message_id: str) -> bool:
        """Delete a previously sent message

        Returns:
            True if deleted, False otherwise
        """
        pass

    def on(self, event: str, handler: Callable):
        """Register an event handler

        Args:
            event: Event name (e.g., 'interaction', 'error', 'connected')
            handler: Async function to handle the event
        """
        if event not in self.event_handlers:
            self.event_handlers[event] = []
        self.event_handlers[event].append(handler)
        logger.debug(f"Registered handler for event '{event}' on {self.channel_name}")

    def off(self, event: str, handler: Callable):
        """Unregister an event handler"""
        if event in self.event_handlers:
            try:
                self.event_handlers[event].remove(handler)
                logger.debug(f"Unregistered handler for event '{event}' on {self.channel_name}")
            except ValueError:
                pass

    async def emit(self, event: str, *args, **kwargs):
        """Emit an event to all registered handlers

        Handlers may unregister themselves while being called.
        """
        for handler in list(self.event_handlers.get(event, [])):
            try:
                if asyncio.iscoroutinefunction(handler):
                    await handler(*args, **kwargs)
                else:
                    handler(*args, **kwargs)
            except Exception as e:
                logger.error(f"Error in event handler for '{event}': {e}", exc_info=True)

    def get_status(self) -> Dict[str, Any]:
        """Get channel status information"""
        return {
            "channel": self.channel_name,
            "status": self.status.value,
            "config": {k: "***" if "key" in k.lower() or "token" in k.lower() else v
                      for k, v in self.config.items()}
        }

    async def health_check(self) -> bool:
        """Check if channel is healthy and connected"""
        return self.status == ChannelStatus.CONNECTED
