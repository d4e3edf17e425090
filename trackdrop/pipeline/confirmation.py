"""Interactive confirmation gate: a two-button prompt raced against a timeout"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from trackdrop.channels.base import Channel, InteractionEvent, PromptAction
from .models import UploadRequest, format_tags, NOT_APPLICABLE

logger = logging.getLogger(__name__)

DEFAULT_CONFIRMATION_TIMEOUT = 60.0


class ConfirmationResult(Enum):
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    TIMED_OUT = "timed_out"


class SessionState(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DECLINED = "declined"
    EXPIRED = "expired"


def _new_token() -> str:
    # uuid4 hex is 32 bytes, within Telegram's 64-byte callback data limit
    return uuid.uuid4().hex


@dataclass
class ConfirmationSession:
    """Tokens and state for one pending prompt"""
    requester_id: str
    timeout: float = DEFAULT_CONFIRMATION_TIMEOUT
    affirm_token: str = field(default_factory=_new_token)
    decline_token: str = field(default_factory=_new_token)
    message_id: Optional[str] = None
    state: SessionState = SessionState.PENDING

    @property
    def is_pending(self) -> bool:
        return self.state == SessionState.PENDING

    def resolve(self, state: SessionState) -> None:
        if not self.is_pending:
            raise RuntimeError(f"Confirmation session already {self.state.value}")
        if state == SessionState.PENDING:
            raise ValueError("Cannot resolve a session back to pending")
        self.state = state


def render_prompt(request: UploadRequest) -> str:
    """Text shown to the requester before anything is downloaded"""
    return (
        f"Title: {request.title}\n"
        f"Description: {request.description or NOT_APPLICABLE}\n"
        f"Tags: {format_tags(request.tag_list)}\n\n"
        "Note that if your image has a vertical (tall)/square aspect ratio, "
        "it may end up being uploaded as a short instead.\n"
        "If you don't want that, make sure your image is wide.\n\n"
        "Is all of your information correct?"
    )


class ConfirmationGate:
    """
    Ask the requester to confirm and wait for the answer.

    Only the requester's own button presses count. The first matching press
    (or the timeout) resolves the gate; everything after is ignored. The
    prompt is retracted on every resolution.
    """

    def __init__(
        self,
        channel: Channel,
        requester_id: str,
        timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
    ):
        self.channel = channel
        self.session = ConfirmationSession(requester_id=str(requester_id), timeout=timeout)
        self._future: Optional[asyncio.Future] = None

    async def confirmation(self, chat_id: str, prompt_text: str) -> ConfirmationResult:
        session = self.session
        actions = [
            PromptAction("Yes", session.affirm_token, style="success"),
            PromptAction("No", session.decline_token, style="danger"),
        ]
        self._future = asyncio.get_running_loop().create_future()
        self.channel.on("interaction", self._on_interaction)
        try:
            session.message_id = await self.channel.send_prompt(chat_id, prompt_text, actions)
            if session.message_id is None:
                logger.error(f"Could not deliver confirmation prompt to chat {chat_id}")
                self._settle(SessionState.DECLINED)
            try:
                state = await asyncio.wait_for(asyncio.shield(self._future), timeout=session.timeout)
            except asyncio.TimeoutError:
                self._settle(SessionState.EXPIRED)
                state = session.state
        finally:
            self.channel.off("interaction", self._on_interaction)

        await self._retract(chat_id)

        if state == SessionState.CONFIRMED:
            return ConfirmationResult.CONFIRMED
        if state == SessionState.EXPIRED:
            logger.info(f"Confirmation for {session.requester_id} timed out after {session.timeout:.0f}s")
            return ConfirmationResult.TIMED_OUT
        return ConfirmationResult.DECLINED

    def _settle(self, state: SessionState) -> bool:
        """Resolve the session once; later calls are no-ops."""
        if not self.session.is_pending:
            return False
        self.session.resolve(state)
        if self._future is not None and not self._future.done():
            self._future.set_result(state)
        return True

    async def _on_interaction(self, event: InteractionEvent) -> None:
        if not self.session.is_pending:
            return
        if str(event.user.id) != self.session.requester_id:
            return
        if event.token == self.session.affirm_token:
            self._settle(SessionState.CONFIRMED)
        elif event.token == self.session.decline_token:
            self._settle(SessionState.DECLINED)

    async def _retract(self, chat_id: str) -> None:
        message_id = self.session.message_id
        if message_id is None:
            return
        try:
            if not await self.channel.delete_message(chat_id, message_id):
                logger.warning(f"Could not delete confirmation prompt {message_id}")
        except Exception as e:
            logger.warning(f"Failed to delete confirmation prompt {message_id}: {e}")
