"""Client for the site's song ingestion endpoint"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import urlparse

import aiohttp

from trackdrop.security import sign_request

logger = logging.getLogger(__name__)

INGEST_PATH = "/api/sound"

# (field name, value, filename or None)
FormField = Tuple[str, object, Optional[str]]


class SubmissionError(Exception):
    """Raised when the site rejects or never receives a submission."""


class SiteClient:
    """Submits published songs to the site with an HMAC-signed multipart POST"""

    def __init__(self, base_url: str, secret: str, timeout: float = 120.0):
        self.base_url = base_url.rstrip("/")
        self.secret = secret
        self.timeout = timeout

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def build_fields(
        self,
        title: str,
        youtube_url: str,
        soundcloud_url: str,
        audio_path: Path,
        image_path: Path,
        tags_raw: str = "",
    ) -> List[FormField]:
        """Multipart fields; files are renamed to track<ext> and cover<ext>"""
        fields: List[FormField] = [
            ("title", title, None),
            ("soundcloudUrl", soundcloud_url, None),
            ("youtubeUrl", youtube_url, None),
            ("track", audio_path.read_bytes(), f"track{audio_path.suffix}"),
            ("cover", image_path.read_bytes(), f"cover{image_path.suffix}"),
        ]
        if tags_raw:
            fields.append(("tags", tags_raw, None))
        return fields

    async def _post(self, path: str, fields: List[FormField]) -> Tuple[int, str]:
        form = aiohttp.FormData()
        for name, value, filename in fields:
            if filename:
                form.add_field(name, value, filename=filename)
            else:
                form.add_field(name, value)
        url = self.url(path)
        headers = sign_request(self.secret, "POST", urlparse(url).path)
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, data=form, headers=headers) as response:
                return response.status, await response.text()

    async def submit(
        self,
        title: str,
        youtube_url: str,
        soundcloud_url: str,
        audio_path: Path,
        image_path: Path,
        tags_raw: str = "",
    ) -> None:
        """
        Send the song to the site.

        Raises:
            SubmissionError: HTTP error status, network failure or unreadable file
        """
        loop = asyncio.get_running_loop()
        try:
            fields = await loop.run_in_executor(
                None,
                self.build_fields,
                title, youtube_url, soundcloud_url, audio_path, image_path, tags_raw,
            )
            status, text = await self._post(INGEST_PATH, fields)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise SubmissionError(f"Request to {self.url(INGEST_PATH)} failed: {e}") from e

        if status >= 400:
            raise SubmissionError(f"HTTP {status}: {text[:500]}")
        logger.info(f"Submitted '{title}' to {self.base_url}")
