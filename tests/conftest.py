from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

from trackdrop.channels.base import Channel, ChannelUser, InteractionEvent, PromptAction
from trackdrop.config import Settings
from trackdrop.media.assets import AssetStore, DownloadError
from trackdrop.media.transcode import Transcoder, TranscodeError
from trackdrop.observability.metrics import MetricsCollector
from trackdrop.pipeline.models import Attachment, TemporaryAsset
from trackdrop.pipeline.orchestrator import UploadPipeline
from trackdrop.publishers.base import PublishTarget, PublishAssets, PublishError
from trackdrop.site_client import SiteClient

REQUESTER_ID = "42"
AUDIO_URL = "https://cdn.example.test/files/song.mp3"
IMAGE_URL = "https://cdn.example.test/files/cover.png"
YOUTUBE_URL = "https://www.youtube.com/watch?v=abc123"
SOUNDCLOUD_URL = "https://soundcloud.com/collective/test-song"


class FakeChannel(Channel):
    """In-memory channel. Presses prompt buttons on behalf of users."""

    def __init__(self, presses: Optional[List[Tuple[str, str]]] = None):
        super().__init__("fake", {})
        # (user_id, "yes" | "no" | raw token), pressed in order after a prompt is sent
        self.presses = presses or []
        self.messages: List[Tuple[str, str]] = []
        self.prompts: List[Tuple[str, str, List[PromptAction]]] = []
        self.deleted: List[Tuple[str, str]] = []
        self.prompt_fails = False
        self.delete_result = True
        self.delete_raises = False
        self.send_result = True
        self._tasks: List[asyncio.Task] = []

    async def start(self):
        pass

    async def stop(self):
        pass

    async def send_message(self, chat_id, content, reply_to=None, **kwargs) -> bool:
        self.messages.append((chat_id, content))
        return self.send_result

    async def send_prompt(self, chat_id, content, actions) -> Optional[str]:
        if self.prompt_fails:
            return None
        self.prompts.append((chat_id, content, list(actions)))
        if self.presses:
            self._tasks.append(asyncio.create_task(self._press_all(chat_id, actions)))
        return f"prompt-{len(self.prompts)}"

    async def delete_message(self, chat_id, message_id) -> bool:
        if self.delete_raises:
            raise RuntimeError("message already gone")
        self.deleted.append((chat_id, message_id))
        return self.delete_result

    async def _press_all(self, chat_id, actions):
        tokens = {"yes": actions[0].token, "no": actions[1].token}
        for user_id, choice in self.presses:
            await asyncio.sleep(0)
            await self.press(user_id, tokens.get(choice, choice), chat_id)

    async def press(self, user_id: str, token: str, chat_id: str = "chat"):
        await self.emit(
            "interaction",
            InteractionEvent(user=ChannelUser(id=user_id), token=token, chat_id=chat_id),
        )

    def texts(self, chat_id: str = "chat") -> List[str]:
        return [content for cid, content in self.messages if cid == chat_id]


class StubAssetStore(AssetStore):
    """AssetStore serving canned bytes instead of fetching over HTTP"""

    def __init__(self, scratch_dir: Path, payloads: Dict[str, bytes], failing: Tuple[str, ...] = ()):
        super().__init__(scratch_dir)
        self.payloads = payloads
        self.failing = failing
        self.fetched: List[str] = []
        self.release_calls: List[List[TemporaryAsset]] = []

    async def _fetch(self, url: str) -> bytes:
        self.fetched.append(url)
        if url in self.failing or url not in self.payloads:
            raise DownloadError(url, "connection reset by peer")
        return self.payloads[url]

    def release_all(self, assets):
        assets = list(assets)
        self.release_calls.append(assets)
        return super().release_all(assets)


class SpyTranscoder(Transcoder):
    def __init__(self, fail_with: Optional[str] = None):
        super().__init__(enabled=True)
        self.fail_with = fail_with
        self.calls: List[Tuple[Path, Path, Path]] = []

    async def combine(self, image_path, audio_path, output_path):
        self.calls.append((image_path, audio_path, output_path))
        # A failing encoder may still leave a partial file behind
        Path(output_path).write_bytes(b"partial-mp4")
        if self.fail_with is not None:
            raise TranscodeError("ffmpeg exited with 1", stderr=self.fail_with, returncode=1)
        return output_path


class StubTarget(PublishTarget):
    def __init__(self, name: str, url: str = "", requires_video: bool = False,
                 error: Optional[PublishError] = None):
        self.name = name
        self.url = url
        self.requires_video = requires_video
        self.error = error
        self.calls: List[dict] = []

    async def publish(self, title, description, tags, assets: PublishAssets) -> str:
        self.calls.append(
            {"title": title, "description": description, "tags": tags, "assets": assets}
        )
        if self.error is not None:
            raise self.error
        return self.url


class RecordingSite(SiteClient):
    """SiteClient that records the multipart fields instead of posting them"""

    def __init__(self, status: int = 200):
        super().__init__("https://site.example.test", "secret")
        self.status = status
        self.posts: List[Tuple[str, list]] = []

    async def _post(self, path, fields):
        self.posts.append((path, fields))
        return self.status, "ok" if self.status < 400 else "internal error"

    def field(self, name: str, index: int = -1):
        _, fields = self.posts[index]
        for field_name, value, filename in fields:
            if field_name == name:
                return value, filename
        return None


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        scratch_dir=str(tmp_path / "scratch"),
        confirmation_timeout=2.0,
        telegram_feed_chat_id="feed",
        youtube_enabled=True,
        soundcloud_enabled=True,
        soundcloud_access_token="sc-token",
        placeholder_url="https://example.com/",
    )


@pytest.fixture
def requester() -> ChannelUser:
    return ChannelUser(id=REQUESTER_ID, username="composer")


@pytest.fixture
def audio() -> Attachment:
    return Attachment(url=AUDIO_URL, filename="song.mp3")


@pytest.fixture
def image() -> Attachment:
    return Attachment(url=IMAGE_URL, filename="cover.png")


@pytest.fixture
def asset_store(tmp_path) -> StubAssetStore:
    return StubAssetStore(
        tmp_path / "scratch",
        payloads={AUDIO_URL: b"ID3-audio-bytes", IMAGE_URL: b"\x89PNG-image-bytes"},
    )


@pytest.fixture
def make_pipeline(settings, asset_store):
    """Build a pipeline around stub collaborators; override any of them by keyword."""

    def _make(channel, pipeline_settings=None, **overrides):
        components = {
            "assets": asset_store,
            "transcoder": SpyTranscoder(),
            "targets": [
                StubTarget("youtube", url=YOUTUBE_URL, requires_video=True),
                StubTarget("soundcloud", url=SOUNDCLOUD_URL),
            ],
            "site": RecordingSite(),
            "metrics": MetricsCollector(),
        }
        components.update(overrides)
        return UploadPipeline(pipeline_settings or settings, channel, **components)

    return _make
