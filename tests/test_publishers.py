import json
import threading

import httplib2
import pytest
from googleapiclient.errors import HttpError

from trackdrop.config import Settings
from trackdrop.publishers import (
    DisabledTarget,
    PublishAssets,
    PublishError,
    SoundCloudTarget,
    YouTubeTarget,
    build_targets,
    describe_with_tags,
)
from trackdrop.publishers.soundcloud import format_tag_list


@pytest.fixture
def assets(tmp_path):
    audio = tmp_path / "song.mp3"
    image = tmp_path / "cover.png"
    video = tmp_path / "video.mp4"
    audio.write_bytes(b"audio")
    image.write_bytes(b"image")
    video.write_bytes(b"video")
    return PublishAssets(audio_path=audio, image_path=image, video_path=video)


class FakeInsertRequest:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.chunks = 0

    def next_chunk(self):
        self.chunks += 1
        if self.error is not None:
            raise self.error
        if self.chunks < 2:
            return None, None
        return None, self.response


class FakeYouTubeService:
    """Mimics service.videos().insert(...).next_chunk()"""

    def __init__(self, request):
        self.request = request
        self.inserted = []

    def videos(self):
        return self

    def insert(self, part, body, media_body):
        self.inserted.append({"part": part, "body": body, "media": media_body})
        return self.request


@pytest.mark.unit
def test_description_gets_tag_line():
    assert describe_with_tags("Made at night", ["lofi", "chill"]) == "Made at night\n\nTags: lofi, chill"
    assert describe_with_tags("", []) == "\n\nTags: N/A"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_disabled_target_returns_placeholder(assets):
    target = DisabledTarget("youtube", "https://example.com/")

    assert target.enabled is False
    assert await target.publish("t", "", [], assets) == "https://example.com/"


class TestYouTube:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_upload_returns_watch_url(self, assets):
        service = FakeYouTubeService(
            FakeInsertRequest({"id": "abc123", "status": {"uploadStatus": "uploaded"}})
        )
        target = YouTubeTarget("unused.json", service=service)

        url = await target.publish("Song", "desc", ["a", "b"], assets)

        assert url == "https://www.youtube.com/watch?v=abc123"
        body = service.inserted[0]["body"]
        assert body["snippet"]["title"] == "Song"
        assert body["snippet"]["tags"] == ["a", "b"]
        assert body["snippet"]["categoryId"] == "10"
        assert body["snippet"]["description"].endswith("Tags: a, b")
        assert body["status"]["privacyStatus"] == "public"
        assert service.request.chunks == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rejected_status_carries_response(self, assets):
        response = {"id": "abc123", "status": {"uploadStatus": "rejected", "rejectionReason": "duplicate"}}
        target = YouTubeTarget("unused.json", service=FakeYouTubeService(FakeInsertRequest(response)))

        with pytest.raises(PublishError) as exc_info:
            await target.publish("Song", "", [], assets)

        assert exc_info.value.target == "youtube"
        assert json.loads(exc_info.value.payload) == response

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_api_error_becomes_publish_error(self, assets):
        error = HttpError(
            httplib2.Response({"status": 403}),
            b'{"error": {"code": 403, "message": "quotaExceeded"}}',
        )
        target = YouTubeTarget("unused.json", service=FakeYouTubeService(FakeInsertRequest(error=error)))

        with pytest.raises(PublishError, match="API error 403") as exc_info:
            await target.publish("Song", "", [], assets)
        assert "quotaExceeded" in exc_info.value.payload

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_video(self, assets):
        target = YouTubeTarget("unused.json", service=FakeYouTubeService(FakeInsertRequest()))
        no_video = PublishAssets(audio_path=assets.audio_path, image_path=assets.image_path)

        with pytest.raises(PublishError, match="No video"):
            await target.publish("Song", "", [], no_video)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_credentials(self, assets, tmp_path):
        target = YouTubeTarget(str(tmp_path / "absent.json"))

        with pytest.raises(PublishError, match="No usable credentials"):
            await target.publish("Song", "", [], assets)


class RecordingSoundCloud(SoundCloudTarget):
    def __init__(self, status=201, data=None, text=""):
        super().__init__("sc-token")
        self.reply = (status, data or {}, text)
        self.forms = []

    async def _post(self, form):
        self.forms.append(form)
        return self.reply


class TestSoundCloud:
    @pytest.mark.unit
    def test_tag_list_quotes_multiword_tags(self):
        assert format_tag_list(["lofi", "late night", "chill"]) == 'lofi "late night" chill'
        assert format_tag_list([]) == ""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_returns_permalink(self, assets):
        target = RecordingSoundCloud(data={"permalink_url": "https://soundcloud.com/c/song"})

        assert await target.publish("Song", "", ["a"], assets) == "https://soundcloud.com/c/song"
        fields = {opts["name"] for opts, _, _ in target.forms[0]._fields}
        assert {"track[title]", "track[asset_data]", "track[artwork_data]"} <= fields

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_error_status(self, assets):
        target = RecordingSoundCloud(status=401, text='{"error": "invalid_token"}')

        with pytest.raises(PublishError, match="HTTP 401") as exc_info:
            await target.publish("Song", "", [], assets)
        assert exc_info.value.payload == '{"error": "invalid_token"}'

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_permalink(self, assets):
        target = RecordingSoundCloud(status=201, data={"id": 7}, text='{"id": 7}')

        with pytest.raises(PublishError, match="permalink"):
            await target.publish("Song", "", [], assets)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unreadable_audio(self, assets, tmp_path):
        target = RecordingSoundCloud(data={"permalink_url": "x"})
        gone = PublishAssets(audio_path=tmp_path / "gone.mp3", image_path=assets.image_path)

        with pytest.raises(PublishError, match="Could not read assets"):
            await target.publish("Song", "", [], gone)
        assert target.forms == []


class TestBuildTargets:
    @pytest.mark.unit
    def test_both_enabled(self):
        settings = Settings(youtube_enabled=True, soundcloud_enabled=True, soundcloud_access_token="t")
        video, audio = build_targets(settings)

        assert isinstance(video, YouTubeTarget)
        assert isinstance(audio, SoundCloudTarget)

    @pytest.mark.unit
    def test_disabled_targets_use_placeholder(self):
        settings = Settings(
            youtube_enabled=False,
            soundcloud_enabled=False,
            placeholder_url="https://placeholder.test/",
        )
        video, audio = build_targets(settings)

        assert isinstance(video, DisabledTarget) and video.name == "youtube"
        assert isinstance(audio, DisabledTarget) and audio.name == "soundcloud"
        assert video.placeholder_url == "https://placeholder.test/"

    @pytest.mark.unit
    def test_soundcloud_without_token_is_disabled(self):
        settings = Settings(youtube_enabled=False, soundcloud_enabled=True, soundcloud_access_token=None)
        _, audio = build_targets(settings)

        assert audio.enabled is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_soundcloud_reads_files_off_the_event_loop(assets):
    class ThreadRecordingSoundCloud(RecordingSoundCloud):
        def build_form(self, *args):
            self.build_thread = threading.current_thread()
            return super().build_form(*args)

    target = ThreadRecordingSoundCloud(data={"permalink_url": "https://soundcloud.com/c/song"})

    await target.publish("Song", "", [], assets)

    assert target.build_thread is not threading.main_thread()
