"""Media handling: scratch assets and video encoding"""

from .assets import AssetStore, AssetScope, DownloadError, content_hash, redact_url
from .transcode import Transcoder, TranscodeError

__all__ = [
    "AssetStore",
    "AssetScope",
    "DownloadError",
    "content_hash",
    "redact_url",
    "Transcoder",
    "TranscodeError",
]
