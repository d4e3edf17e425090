"""YouTube video target (YouTube Data API v3)"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from .base import PublishTarget, PublishAssets, PublishError, describe_with_tags

logger = logging.getLogger(__name__)

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"
YOUTUBE_SCOPES = ["https://www.googleapis.com/auth/youtube.upload"]


class YouTubeTarget(PublishTarget):
    """Uploads the transcoded video"""

    name = "youtube"
    requires_video = True

    def __init__(
        self,
        credentials_file: str,
        secret_key: Optional[str] = None,
        category_id: str = "10",
        privacy_status: str = "public",
        service: Any = None,
    ):
        """
        Args:
            credentials_file: Authorized-user token JSON (plain or encrypted)
            secret_key: Key for encrypted credentials
            category_id: YouTube category (10 = Music)
            privacy_status: public, unlisted or private
            service: Prebuilt API client; built from credentials when omitted
        """
        self.credentials_file = credentials_file
        self.secret_key = secret_key
        self.category_id = category_id
        self.privacy_status = privacy_status
        self._service = service

    def _build_service(self):
        from google.oauth2.credentials import Credentials
        from google.auth.transport.requests import Request
        from googleapiclient.discovery import build
        from trackdrop.credentials import load_credentials

        token_data = load_credentials(self.credentials_file, self.secret_key)
        if not token_data:
            raise PublishError(self.name, f"No usable credentials in {self.credentials_file}")
        creds = Credentials.from_authorized_user_info(token_data, YOUTUBE_SCOPES)
        if creds.expired and creds.refresh_token:
            creds.refresh(Request())
        return build("youtube", "v3", credentials=creds, cache_discovery=False)

    def build_body(self, title: str, description: str, tags: List[str]) -> Dict[str, Any]:
        return {
            "snippet": {
                "title": title,
                "description": describe_with_tags(description, tags),
                "tags": tags,
                "categoryId": self.category_id,
            },
            "status": {
                "privacyStatus": self.privacy_status,
                "selfDeclaredMadeForKids": False,
            },
        }

    def _upload(self, body: Dict[str, Any], video_path: str) -> Dict[str, Any]:
        from googleapiclient.http import MediaFileUpload

        if self._service is None:
            self._service = self._build_service()
        media = MediaFileUpload(video_path, mimetype="video/mp4", chunksize=-1, resumable=True)
        request = self._service.videos().insert(part="snippet,status", body=body, media_body=media)
        response = None
        while response is None:
            _, response = request.next_chunk()
        return response

    async def publish(
        self,
        title: str,
        description: str,
        tags: List[str],
        assets: PublishAssets,
    ) -> str:
        if assets.video_path is None:
            raise PublishError(self.name, "No video was produced to upload")

        from googleapiclient.errors import HttpError

        body = self.build_body(title, description, tags)
        loop = asyncio.get_running_loop()
        try:
            response = await loop.run_in_executor(None, self._upload, body, str(assets.video_path))
        except HttpError as e:
            content = e.content.decode("utf-8", errors="replace") if e.content else str(e)
            raise PublishError(self.name, f"API error {e.resp.status}", payload=content) from e
        except PublishError:
            raise
        except Exception as e:
            logger.error(f"YouTube upload failed: {e}", exc_info=True)
            raise PublishError(self.name, str(e)) from e

        status = (response or {}).get("status") or {}
        if status.get("uploadStatus") != "uploaded" or not response.get("id"):
            raise PublishError(
                self.name,
                "An error occurred while uploading the video",
                payload=json.dumps(response, indent=2),
            )
        url = WATCH_URL.format(video_id=response["id"])
        logger.info(f"Uploaded to YouTube: {url}")
        return url
