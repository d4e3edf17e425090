"""Telegram channel implementation"""

import asyncio
import logging
import time
from collections import OrderedDict
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    MessageHandler,
    filters,
    ContextTypes,
)

from trackdrop.config import Settings
from trackdrop.pipeline.models import Attachment, AUDIO_EXTENSIONS, IMAGE_EXTENSIONS
from trackdrop.pipeline.orchestrator import UploadPipeline
from .base import Channel, ChannelUser, ChannelStatus, InteractionEvent, PromptAction

logger = logging.getLogger(__name__)

# Telegram always re-encodes photos as JPEG
PHOTO_FILENAME = "photo.jpg"

# Bot API file links stay valid for at least an hour
PENDING_TTL_SECONDS = 3600
MAX_PENDING_UPLOADS = 500

PendingKey = Tuple[str, str]


def parse_upload_args(text: str) -> Tuple[str, str, str]:
    """Split '/upload Title | Description | tags' arguments into three fields"""
    parts = [p.strip() for p in (text or "").split("|", 2)]
    parts += [""] * (3 - len(parts))
    return parts[0], parts[1], parts[2]


def classify_attachment(filename: str) -> Optional[str]:
    """Return "audio", "image" or None from a filename's extension"""
    ext = Path(filename or "").suffix.lower()
    if ext in AUDIO_EXTENSIONS:
        return "audio"
    if ext in IMAGE_EXTENSIONS:
        return "image"
    return None


def _user_from_update(update: Update) -> ChannelUser:
    u = update.effective_user
    return ChannelUser(
        id=str(u.id),
        username=u.username,
        first_name=u.first_name,
        last_name=u.last_name,
    )


class TelegramChannel(Channel):
    """Telegram bot: collects attachments, runs /upload, relays button presses"""

    def __init__(self, settings: Settings):
        """Initialize Telegram channel

        Args:
            settings: Application settings
        """
        config = {
            "bot_token": settings.telegram_bot_token,
            "webhook_url": settings.telegram_webhook_url,
            "feed_chat_id": settings.telegram_feed_chat_id,
        }
        super().__init__("telegram", config)

        self.settings = settings
        self.application: Optional[Application] = None
        self.pipeline = UploadPipeline.from_settings(settings, self)
        # (chat_id, user_id) -> (last update, {"audio": Attachment, "image": Attachment}),
        # oldest first
        self._pending: "OrderedDict[PendingKey, Tuple[float, Dict[str, Attachment]]]" = OrderedDict()
        self._stop_event: Optional[asyncio.Event] = None

    def _expire_pending(self, now: float) -> None:
        while self._pending:
            key, (updated, _) = next(iter(self._pending.items()))
            if now - updated < PENDING_TTL_SECONDS and len(self._pending) <= MAX_PENDING_UPLOADS:
                break
            self._pending.popitem(last=False)
            logger.debug(f"Dropped pending attachments for {key}")

    def remember_attachment(
        self, key: PendingKey, kind: str, attachment: Attachment, now: Optional[float] = None
    ) -> None:
        """Hold an attachment for the sender's next /upload in that chat"""
        now = time.monotonic() if now is None else now
        _, attachments = self._pending.pop(key, (now, {}))
        attachments[kind] = attachment
        self._pending[key] = (now, attachments)
        self._expire_pending(now)

    def take_pending(self, key: PendingKey, now: Optional[float] = None) -> Dict[str, Attachment]:
        """Remove and return the unexpired attachments for key"""
        self._expire_pending(time.monotonic() if now is None else now)
        _, attachments = self._pending.pop(key, (0.0, {}))
        return attachments

    async def start(self):
        """Start Telegram bot"""
        if not self.config.get("bot_token"):
            logger.warning("No Telegram bot token configured")
            self.status = ChannelStatus.ERROR
            return

        logger.info("Starting Telegram channel...")
        self.status = ChannelStatus.CONNECTING

        try:
            self.application = (
                Application.builder()
                .token(self.config["bot_token"])
                .build()
            )

            # /upload waits on button presses, so it must not block the update loop
            self.application.add_handler(CommandHandler("start", self.cmd_start))
            self.application.add_handler(CommandHandler("help", self.cmd_help))
            self.application.add_handler(CommandHandler("upload", self.cmd_upload, block=False))
            self.application.add_handler(CallbackQueryHandler(self.handle_callback))
            self.application.add_handler(
                MessageHandler(
                    filters.AUDIO | filters.Document.ALL | filters.PHOTO,
                    self.handle_attachment,
                )
            )

            await self.application.initialize()
            await self.application.start()
            if self.config.get("webhook_url"):
                await self.application.updater.start_webhook(
                    listen="0.0.0.0",
                    port=8443,
                    webhook_url=self.config["webhook_url"],
                )
            else:
                await self.application.updater.start_polling()

            self.status = ChannelStatus.CONNECTED
            await self.emit("connected")
            logger.info("✓ Telegram channel started successfully")

            # start_polling() returns immediately; hold here until stop()
            self._stop_event = asyncio.Event()
            await self._stop_event.wait()

            await self.application.updater.stop()
            await self.application.stop()
            await self.application.shutdown()

        except Exception as e:
            logger.error(f"Failed to start Telegram channel: {e}", exc_info=True)
            self.status = ChannelStatus.ERROR
            await self.emit("error", error=str(e))
            raise

    async def stop(self):
        """Stop Telegram bot"""
        logger.info("Stopping Telegram channel...")

        if self._stop_event:
            self._stop_event.set()
        elif self.application:
            try:
                await self.application.updater.stop()
                await self.application.stop()
                await self.application.shutdown()
            except Exception as e:
                logger.warning(f"Error during Telegram shutdown: {e}")

        self.status = ChannelStatus.DISCONNECTED
        await self.emit("disconnected")
        logger.info("✓ Telegram channel stopped")

    async def send_message(
        self,
        chat_id: str,
        content: str,
        reply_to: Optional[str] = None,
        **kwargs
    ) -> bool:
        """Send a message via Telegram"""
        if not self.application:
            logger.error("Telegram application not initialized")
            return False

        try:
            await self.application.bot.send_message(
                chat_id=int(chat_id),
                text=content,
                reply_to_message_id=int(reply_to) if reply_to else None,
                **kwargs
            )
            return True
        except Exception as e:
            logger.error(f"Failed to send Telegram message: {e}")
            return False

    async def send_prompt(
        self,
        chat_id: str,
        content: str,
        actions: List[PromptAction],
    ) -> Optional[str]:
        """Send a message with one inline button per action"""
        if not self.application:
            logger.error("Telegram application not initialized")
            return None

        keyboard = InlineKeyboardMarkup(
            [[InlineKeyboardButton(a.label, callback_data=a.token) for a in actions]]
        )
        try:
            message = await self.application.bot.send_message(
                chat_id=int(chat_id),
                text=content,
                reply_markup=keyboard,
            )
            return str(message.message_id)
        except Exception as e:
            logger.error(f"Failed to send Telegram prompt: {e}")
            return None

    async def delete_message(self, chat_id: str, message_id: str) -> bool:
        """Delete a message via Telegram"""
        if not self.application:
            return False

        try:
            return bool(
                await self.application.bot.delete_message(
                    chat_id=int(chat_id), message_id=int(message_id)
                )
            )
        except Exception as e:
            logger.error(f"Failed to delete Telegram message {message_id}: {e}")
            return False

    # Command handlers
    async def cmd_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /start command"""
        welcome_text = (
            "🎵 Welcome to TrackDrop!\n\n"
            "Send me an audio file (mp3 or wav) and a cover image (png or jpg), "
            "then publish them with:\n"
            "/upload Title | Description | tag one, tag two\n\n"
            "/help - Show help"
        )
        await update.message.reply_text(welcome_text)

    async def cmd_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /help command"""
        help_text = (
            "🎵 TrackDrop Help\n\n"
            "1. Send the audio file (mp3 or wav) as a file or audio message\n"
            "2. Send the cover image (png or jpg)\n"
            "3. /upload Title | Description | comma, separated, tags\n\n"
            "Description and tags are optional. You will be asked to confirm "
            "before anything is uploaded."
        )
        await update.message.reply_text(help_text)

    async def cmd_upload(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Handle /upload Title | Description | tags"""
        if not update.message or not update.effective_user:
            return

        user = _user_from_update(update)
        chat_id = str(update.message.chat_id)
        command_parts = (update.message.text or "").split(maxsplit=1)
        title, description, tags = parse_upload_args(
            command_parts[1] if len(command_parts) > 1 else ""
        )
        pending = self.take_pending((chat_id, user.id))

        logger.info(f"Upload from {user.full_name}: {title[:50]}")
        try:
            await self.pipeline.handle(
                user,
                chat_id,
                title=title,
                audio=pending.get("audio"),
                image=pending.get("image"),
                description=description,
                tags=tags,
            )
        except Exception as e:
            logger.error(f"Error processing upload: {e}", exc_info=True)
            await update.message.reply_text("❌ Sorry, something went wrong with your upload.")

    async def handle_attachment(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Remember an audio or image attachment for the sender's next /upload"""
        message = update.message
        if not message or not update.effective_user:
            return

        if message.audio:
            file_id, filename = message.audio.file_id, message.audio.file_name or ""
        elif message.document:
            file_id, filename = message.document.file_id, message.document.file_name or ""
        elif message.photo:
            file_id, filename = message.photo[-1].file_id, PHOTO_FILENAME
        else:
            return

        kind = classify_attachment(filename)
        if kind is None:
            await message.reply_text(
                "Unsupported file. Send an mp3/wav audio file or a png/jpg image."
            )
            return

        try:
            tg_file = await context.bot.get_file(file_id)
        except Exception as e:
            logger.error(f"Failed to resolve Telegram file {file_id}: {e}")
            await message.reply_text("❌ Could not read that file. Telegram bots can only fetch files up to 20 MB.")
            return

        key = (str(message.chat_id), str(update.effective_user.id))
        self.remember_attachment(key, kind, Attachment(url=tg_file.file_path, filename=filename))
        logger.debug(f"Stored pending {kind} {filename} for {key}")
        await message.reply_text(f"Got the {kind} file: {filename}")

    async def handle_callback(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        """Relay inline button presses as interaction events"""
        query = update.callback_query
        if not query:
            return
        try:
            await query.answer()
        except Exception as e:
            logger.debug(f"Could not answer callback query: {e}")

        event = InteractionEvent(
            user=_user_from_update(update),
            token=query.data or "",
            chat_id=str(query.message.chat_id) if query.message else None,
            message_id=str(query.message.message_id) if query.message else None,
        )
        await self.emit("interaction", event)
