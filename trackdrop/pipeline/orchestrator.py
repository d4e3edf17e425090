"""Upload pipeline: confirm, download, encode, publish, submit, clean up"""

import logging
import time
from typing import List, Optional

from trackdrop.channels.base import Channel, ChannelUser
from trackdrop.config import Settings
from trackdrop.media.assets import AssetStore, AssetScope, DownloadError
from trackdrop.media.transcode import Transcoder, TranscodeError
from trackdrop.observability.metrics import MetricsCollector, get_metrics
from trackdrop.publishers import PublishTarget, PublishAssets, PublishError, build_targets
from trackdrop.site_client import SiteClient, SubmissionError
from .confirmation import ConfirmationGate, ConfirmationResult, render_prompt
from .models import (
    Attachment,
    PipelineOutcome,
    PipelineStage,
    PublishResult,
    RunStatus,
    UploadRequest,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Keep diagnostics well under chat message size limits
MAX_DIAGNOSTIC_CHARS = 1500

TARGET_LABELS = {"youtube": "YouTube", "soundcloud": "SoundCloud"}


def diagnostic(text: str, limit: int = MAX_DIAGNOSTIC_CHARS) -> str:
    """Plain-text diagnostic for chat, keeping the tail where errors usually are.

    Replies are sent without a parse mode, so no markup is added.
    """
    text = (text or "").strip()
    if len(text) > limit:
        text = "..." + text[-limit:]
    return text


class UploadPipeline:
    """
    Runs one upload request end to end inside the caller's task.

    Every run finishes in the CLEANUP stage. Assets downloaded or reserved
    during the run are released exactly once, whatever happened before.
    """

    def __init__(
        self,
        settings: Settings,
        channel: Channel,
        assets: Optional[AssetStore] = None,
        transcoder: Optional[Transcoder] = None,
        targets: Optional[List[PublishTarget]] = None,
        site: Optional[SiteClient] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.settings = settings
        self.channel = channel
        self.targets = targets if targets is not None else build_targets(settings)
        self.assets = assets or AssetStore(settings.scratch_path, timeout=settings.download_timeout)
        self.transcoder = transcoder or Transcoder(
            ffmpeg_binary=settings.ffmpeg_binary,
            max_width=settings.ffmpeg_max_width,
            preset=settings.ffmpeg_preset,
            profile=settings.ffmpeg_profile,
            enabled=self.needs_video,
        )
        self.site = site or SiteClient(
            settings.site_url, settings.site_secret, timeout=settings.submission_timeout
        )
        self.metrics = metrics or get_metrics()

    @classmethod
    def from_settings(cls, settings: Settings, channel: Channel) -> "UploadPipeline":
        return cls(settings, channel)

    @property
    def needs_video(self) -> bool:
        return any(t.enabled and t.requires_video for t in self.targets)

    async def handle(
        self,
        user: ChannelUser,
        chat_id: str,
        title: Optional[str],
        audio: Optional[Attachment],
        image: Optional[Attachment],
        description: Optional[str] = None,
        tags: Optional[str] = None,
    ) -> PipelineOutcome:
        """
        Run the whole pipeline for one request.

        Args:
            user: The requester; only their button presses count
            chat_id: Chat the request came from; all replies go there
            title: Song title (required)
            audio: Audio attachment (.mp3 or .wav)
            image: Cover attachment (.png or .jpg)
            description: Optional description
            tags: Optional comma-separated tags

        Returns:
            The outcome of the run. Pipeline failures are reported to the
            requester and reflected in the outcome, not raised.
        """
        outcome = PipelineOutcome(
            requester_id=str(user.id),
            placeholder_url=self.settings.placeholder_url,
        )
        try:
            outcome.enter(PipelineStage.VALIDATING)
            try:
                request = UploadRequest.create(
                    user.id, title, audio, image, description=description, tags=tags
                )
            except ValidationError as e:
                outcome.status = RunStatus.REJECTED
                outcome.error = str(e)
                await self._reply(chat_id, str(e))
                return outcome

            outcome.enter(PipelineStage.AWAITING_CONFIRMATION)
            if not await self._confirm(outcome, chat_id, request):
                return outcome

            await self._process(outcome, chat_id, user, request)
            return outcome
        finally:
            if outcome.stage != PipelineStage.CLEANUP:
                outcome.enter(PipelineStage.CLEANUP)
            self.metrics.record_run(
                outcome.status.value if outcome.status else "error",
                failed_stage=outcome.failed_stage.value if outcome.failed_stage else None,
            )

    async def _confirm(self, outcome: PipelineOutcome, chat_id: str, request: UploadRequest) -> bool:
        gate = ConfirmationGate(
            self.channel, request.requester_id, timeout=self.settings.confirmation_timeout
        )
        result = await gate.confirmation(chat_id, render_prompt(request))
        if result == ConfirmationResult.CONFIRMED:
            return True

        outcome.status = RunStatus.CANCELLED
        if result == ConfirmationResult.TIMED_OUT:
            outcome.error = "timed out"
            await self._reply(chat_id, "You took too long to respond")
        else:
            outcome.error = "declined"
        await self._reply(chat_id, "Cancelled")
        return False

    async def _process(
        self,
        outcome: PipelineOutcome,
        chat_id: str,
        user: ChannelUser,
        request: UploadRequest,
    ) -> None:
        async with self.assets.scope() as scope:
            try:
                try:
                    assets = await self._produce(outcome, scope, request)
                except (DownloadError, TranscodeError, PublishError) as e:
                    outcome.status = RunStatus.FAILED
                    outcome.failed_stage = outcome.stage
                    outcome.error = str(e)
                    logger.warning(f"Upload '{request.title}' failed during {outcome.stage.value}: {e}")
                    await self._reply(chat_id, self._failure_message(e))
                    return

                outcome.enter(PipelineStage.SUBMITTING)
                await self._notify_feed(outcome, user, request)
                await self._submit(outcome, chat_id, request, assets)
                outcome.status = RunStatus.COMPLETED
            finally:
                outcome.enter(PipelineStage.CLEANUP)

    async def _produce(
        self,
        outcome: PipelineOutcome,
        scope: AssetScope,
        request: UploadRequest,
    ) -> PublishAssets:
        """Download, encode and publish. Raises on the first failure."""
        outcome.enter(PipelineStage.DOWNLOADING)
        audio = await scope.store("audio", request.audio)
        image = await scope.store("image", request.image)

        outcome.enter(PipelineStage.TRANSCODING)
        video_path = None
        if self.needs_video:
            video = scope.reserve("video", [audio, image], ".mp4")
            video_path = await self.transcoder.combine(image.path, audio.path, video.path)
        else:
            logger.debug("No enabled target needs video, skipping encoder")
        outcome.video_path = video_path

        assets = PublishAssets(audio_path=audio.path, image_path=image.path, video_path=video_path)
        outcome.enter(PipelineStage.PUBLISHING)
        await self._publish(outcome, request, assets)
        return assets

    async def _publish(
        self,
        outcome: PipelineOutcome,
        request: UploadRequest,
        assets: PublishAssets,
    ) -> None:
        # Fail fast: the first rejection stops the remaining targets
        for target in self.targets:
            started = time.monotonic()
            try:
                url = await target.publish(
                    request.title, request.description, request.tag_list, assets
                )
            except PublishError:
                self.metrics.record_publish(target.name, time.monotonic() - started, error=True)
                raise
            if target.enabled:
                self.metrics.record_publish(target.name, time.monotonic() - started)
            outcome.results.append(PublishResult(target.name, url, published=target.enabled))

    async def _notify_feed(
        self,
        outcome: PipelineOutcome,
        user: ChannelUser,
        request: UploadRequest,
    ) -> None:
        feed_chat_id = self.settings.telegram_feed_chat_id
        if not feed_chat_id:
            logger.debug("No feed chat configured, skipping notification")
            return
        content = (
            f"Uploaded by {user.mention}\n"
            f"Title: {request.title}\n"
            f"YouTube: {outcome.video_url}\n"
            f"SoundCloud: {outcome.audio_url}"
        )
        try:
            outcome.feed_notified = await self.channel.send_message(feed_chat_id, content)
        except Exception as e:
            logger.error(f"Failed to send message to feed chat: {e}", exc_info=True)
            return
        if not outcome.feed_notified:
            logger.error("Failed to send message to feed chat")

    async def _submit(
        self,
        outcome: PipelineOutcome,
        chat_id: str,
        request: UploadRequest,
        assets: PublishAssets,
    ) -> None:
        try:
            await self.site.submit(
                title=request.title,
                youtube_url=outcome.video_url,
                soundcloud_url=outcome.audio_url,
                audio_path=assets.audio_path,
                image_path=assets.image_path,
                tags_raw=request.tags_raw,
            )
        except SubmissionError as e:
            outcome.error = str(e)
            logger.error(f"Site submission for '{request.title}' failed: {e}")
            await self._reply(
                chat_id, f"An error occurred while uploading the song\n\n{diagnostic(str(e))}"
            )
            return
        outcome.submitted = True
        await self._reply(
            chat_id,
            f"Uploaded to YouTube: {outcome.video_url}\n"
            f"Uploaded to SoundCloud: {outcome.audio_url}",
        )

    def _failure_message(self, error: Exception) -> str:
        if isinstance(error, DownloadError):
            return f"An error occurred while downloading the files\n\n{diagnostic(str(error))}"
        if isinstance(error, TranscodeError):
            return f"An error occurred while processing the files\n\n{diagnostic(error.stderr or str(error))}"
        if isinstance(error, PublishError):
            label = TARGET_LABELS.get(error.target, error.target)
            detail = error.payload if error.payload is not None else str(error)
            return f"An error occurred while uploading to {label}\n\n{diagnostic(str(detail))}"
        return f"An error occurred\n\n{diagnostic(str(error))}"

    async def _reply(self, chat_id: str, content: str) -> None:
        try:
            if not await self.channel.send_message(chat_id, content):
                logger.warning(f"Could not deliver reply to chat {chat_id}")
        except Exception as e:
            logger.error(f"Failed to reply in chat {chat_id}: {e}", exc_info=True)
