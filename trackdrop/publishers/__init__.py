"""Publish targets: one per platform, each switchable in configuration"""

import logging
from typing import List

from trackdrop.config import Settings
from .base import PublishTarget, PublishAssets, PublishError, DisabledTarget, describe_with_tags
from .youtube import YouTubeTarget
from .soundcloud import SoundCloudTarget

__all__ = [
    "PublishTarget",
    "PublishAssets",
    "PublishError",
    "DisabledTarget",
    "describe_with_tags",
    "YouTubeTarget",
    "SoundCloudTarget",
    "build_targets",
]

logger = logging.getLogger(__name__)


def build_targets(settings: Settings) -> List[PublishTarget]:
    """Video target first, then audio. Disabled ones resolve to the placeholder."""
    if settings.youtube_enabled:
        video: PublishTarget = YouTubeTarget(
            credentials_file=settings.youtube_credentials_file,
            secret_key=settings.secret_key,
            category_id=settings.youtube_category_id,
            privacy_status=settings.youtube_privacy_status,
        )
    else:
        video = DisabledTarget("youtube", settings.placeholder_url)

    if settings.soundcloud_enabled and settings.soundcloud_access_token:
        audio: PublishTarget = SoundCloudTarget(
            access_token=settings.soundcloud_access_token,
            api_url=settings.soundcloud_api_url,
            sharing=settings.soundcloud_sharing,
            timeout=settings.publish_timeout,
        )
    else:
        if settings.soundcloud_enabled:
            logger.warning("SoundCloud enabled but no access token configured, disabling")
        audio = DisabledTarget("soundcloud", settings.placeholder_url)

    return [video, audio]
