"""Data model for the upload pipeline: requests, assets, results, outcomes"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = (".mp3", ".wav")
IMAGE_EXTENSIONS = (".png", ".jpg")

NOT_APPLICABLE = "N/A"


class ValidationError(Exception):
    """Raised when an upload request is missing fields or has bad attachments."""


def parse_tags(raw: Optional[str]) -> List[str]:
    """Split a comma-separated tag string, trimming entries and dropping empties."""
    if not raw or not raw.strip():
        return []
    return [t.strip() for t in raw.split(",") if t.strip()]


def format_tags(tags: List[str]) -> str:
    """Human-readable tag line; an explicit marker when there are none."""
    return ", ".join(tags) if tags else NOT_APPLICABLE


@dataclass(frozen=True)
class Attachment:
    """A remote file referenced by the chat layer"""
    url: str
    filename: str

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lower()


@dataclass(frozen=True)
class UploadRequest:
    """A validated upload request. Build it with UploadRequest.create()."""
    requester_id: str
    title: str
    audio: Attachment
    image: Attachment
    description: str = ""
    tags: tuple = ()
    tags_raw: str = ""

    @classmethod
    def create(
        cls,
        requester_id: str,
        title: Optional[str],
        audio: Optional[Attachment],
        image: Optional[Attachment],
        description: Optional[str] = None,
        tags: Optional[str] = None,
    ) -> "UploadRequest":
        """Validate raw fields and build a request.

        Raises:
            ValidationError: on a blank title, a missing attachment or a
                disallowed file extension
        """
        title = (title or "").strip()
        if audio is None or image is None or not title:
            raise ValidationError(
                "You must provide both an audio and image file, and a title"
            )
        if audio.extension not in AUDIO_EXTENSIONS:
            raise ValidationError("The audio file must be an mp3 or wav file")
        if image.extension not in IMAGE_EXTENSIONS:
            raise ValidationError("The image file must be a png or jpg file")

        tags_raw = (tags or "").strip()
        return cls(
            requester_id=str(requester_id),
            title=title,
            audio=audio,
            image=image,
            description=description or "",
            tags=tuple(parse_tags(tags_raw)),
            tags_raw=tags_raw,
        )

    @property
    def tag_list(self) -> List[str]:
        return list(self.tags)


@dataclass(frozen=True)
class TemporaryAsset:
    """A scratch file owned by one pipeline run"""
    kind: str
    source_url: str
    path: Path
    content_hash: str


@dataclass(frozen=True)
class PublishResult:
    """Outcome of one publish target"""
    target: str
    url: str
    published: bool = True


class PipelineStage(Enum):
    """Stages of a pipeline run, in order. CLEANUP is always last."""
    VALIDATING = "validating"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    DOWNLOADING = "downloading"
    TRANSCODING = "transcoding"
    PUBLISHING = "publishing"
    SUBMITTING = "submitting"
    CLEANUP = "cleanup"


class RunStatus(Enum):
    """Final status of a pipeline run"""
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    FAILED = "failed"
    COMPLETED = "completed"


@dataclass
class PipelineOutcome:
    """Aggregate result of one run, consumed by reporting and tests"""
    requester_id: str
    placeholder_url: str
    status: Optional[RunStatus] = None
    stages: List[PipelineStage] = field(default_factory=list)
    results: List[PublishResult] = field(default_factory=list)
    video_path: Optional[Path] = None
    error: Optional[str] = None
    failed_stage: Optional[PipelineStage] = None
    submitted: bool = False
    feed_notified: bool = False

    def enter(self, stage: PipelineStage) -> None:
        self.stages.append(stage)
        logger.debug(f"Run for {self.requester_id} entering {stage.value}")

    @property
    def stage(self) -> Optional[PipelineStage]:
        return self.stages[-1] if self.stages else None

    def url_for(self, target: str) -> str:
        for result in self.results:
            if result.target == target:
                return result.url
        return self.placeholder_url

    @property
    def video_url(self) -> str:
        return self.url_for("youtube")

    @property
    def audio_url(self) -> str:
        return self.url_for("soundcloud")
