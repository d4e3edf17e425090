"""Base publish target abstraction"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from trackdrop.pipeline.models import format_tags

logger = logging.getLogger(__name__)


class PublishError(Exception):
    """Raised when a platform rejects an upload. Carries the platform's payload."""

    def __init__(self, target: str, message: str, payload: Any = None):
        super().__init__(f"{target}: {message}")
        self.target = target
        self.payload = payload


@dataclass(frozen=True)
class PublishAssets:
    """Local files available to targets"""
    audio_path: Path
    image_path: Path
    video_path: Optional[Path] = None


def describe_with_tags(description: str, tags: List[str]) -> str:
    """Description followed by a trailing human-readable tag line"""
    return f"{description}\n\nTags: {format_tags(tags)}"


class PublishTarget(ABC):
    """A platform that turns local assets into a public URL"""

    name: str = "target"
    requires_video: bool = False
    enabled: bool = True

    @abstractmethod
    async def publish(
        self,
        title: str,
        description: str,
        tags: List[str],
        assets: PublishAssets,
    ) -> str:
        """Upload and return the public URL

        Raises:
            PublishError: the platform rejected the upload
        """
        pass


class DisabledTarget(PublishTarget):
    """Stands in for a target switched off in configuration"""

    enabled = False

    def __init__(self, name: str, placeholder_url: str):
        self.name = name
        self.placeholder_url = placeholder_url

    async def publish(self, title, description, tags, assets) -> str:
        logger.debug(f"{self.name} disabled, using placeholder URL")
        return self.placeholder_url
