"""Long-running bot service"""

from .service import BotService

__all__ = ["BotService"]
