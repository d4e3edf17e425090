"""Bot service: load config, set up logging, run the chat channel until stopped"""

import asyncio
import logging
import signal
from pathlib import Path
from typing import Optional

from trackdrop.config import Settings, get_config_path
from trackdrop.media.assets import AssetStore
from trackdrop.observability.logging_config import setup_logging

logger = logging.getLogger(__name__)


class BotService:
    """Runs the Telegram channel until SIGINT/SIGTERM"""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize bot service

        Args:
            config_path: Path to config file, defaults to config.yaml (see get_config_path)
        """
        self.config_path = config_path or str(get_config_path())
        self.settings: Optional[Settings] = None
        self.channel = None
        self.running = False

    def load_settings(self) -> Settings:
        config_file = Path(self.config_path).expanduser()
        if config_file.exists():
            settings = Settings.from_file(str(config_file))
            logger.info(f"Loaded configuration from {config_file}")
        else:
            settings = Settings()
            logger.warning("Config file not found, using environment and defaults")
        return settings

    def _handle_signal(self):
        """Handle shutdown signals gracefully"""
        logger.info("Received shutdown signal, stopping...")
        if self.channel is not None:
            asyncio.create_task(self.channel.stop())

    async def start(self):
        """Start the bot service and block until the channel stops"""
        logger.info("Starting TrackDrop service...")
        self.settings = self.load_settings()
        setup_logging(
            level=self.settings.log_level,
            json_format=self.settings.log_json,
            log_file=self.settings.log_file,
            log_format=self.settings.log_format,
            secrets=(
                self.settings.telegram_bot_token,
                self.settings.soundcloud_access_token,
                self.settings.site_secret,
                self.settings.secret_key,
            ),
        )

        # Leftovers from a run that never reached cleanup
        AssetStore(self.settings.scratch_path).prune_stale(self.settings.scratch_max_age_hours)

        from trackdrop.channels.telegram import TelegramChannel

        self.channel = TelegramChannel(self.settings)
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self._handle_signal)
            except NotImplementedError:
                # Windows event loops have no signal handler support
                pass

        self.running = True
        try:
            await self.channel.start()
        finally:
            self.running = False
            logger.info("TrackDrop service stopped")

    async def stop(self):
        """Stop the bot service gracefully"""
        if self.channel is not None:
            await self.channel.stop()
