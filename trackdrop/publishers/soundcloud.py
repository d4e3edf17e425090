"""SoundCloud audio target"""

import asyncio
import logging
from typing import List, Tuple

import aiohttp

from .base import PublishTarget, PublishAssets, PublishError, describe_with_tags

logger = logging.getLogger(__name__)


def format_tag_list(tags: List[str]) -> str:
    """SoundCloud tag_list: space separated, multi-word tags quoted"""
    return " ".join(f'"{t}"' if " " in t else t for t in tags)


class SoundCloudTarget(PublishTarget):
    """Uploads the original audio with the cover as artwork"""

    name = "soundcloud"

    def __init__(
        self,
        access_token: str,
        api_url: str = "https://api.soundcloud.com",
        sharing: str = "public",
        timeout: float = 600.0,
    ):
        self.access_token = access_token
        self.api_url = api_url.rstrip("/")
        self.sharing = sharing
        self.timeout = timeout

    def build_form(
        self,
        title: str,
        description: str,
        tags: List[str],
        assets: PublishAssets,
    ) -> aiohttp.FormData:
        form = aiohttp.FormData()
        form.add_field("track[title]", title)
        form.add_field("track[description]", describe_with_tags(description, tags))
        form.add_field("track[tag_list]", format_tag_list(tags))
        form.add_field("track[sharing]", self.sharing)
        form.add_field(
            "track[asset_data]",
            assets.audio_path.read_bytes(),
            filename=assets.audio_path.name,
        )
        form.add_field(
            "track[artwork_data]",
            assets.image_path.read_bytes(),
            filename=assets.image_path.name,
        )
        return form

    async def _post(self, form: aiohttp.FormData) -> Tuple[int, dict, str]:
        """POST the track, returning (status, json body or {}, raw text)"""
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        headers = {
            "Authorization": f"OAuth {self.access_token}",
            "Accept": "application/json; charset=utf-8",
        }
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(f"{self.api_url}/tracks", data=form, headers=headers) as response:
                text = await response.text()
                try:
                    data = await response.json(content_type=None)
                except ValueError:
                    data = {}
                return response.status, data if isinstance(data, dict) else {}, text

    async def publish(
        self,
        title: str,
        description: str,
        tags: List[str],
        assets: PublishAssets,
    ) -> str:
        loop = asyncio.get_running_loop()
        try:
            # Audio files can be large; read them off the event loop
            form = await loop.run_in_executor(
                None, self.build_form, title, description, tags, assets
            )
            status, data, text = await self._post(form)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise PublishError(self.name, f"Request failed: {str(e) or e.__class__.__name__}") from e
        except OSError as e:
            raise PublishError(self.name, f"Could not read assets: {e}") from e

        if status >= 400:
            raise PublishError(self.name, f"HTTP {status}", payload=text)
        url = data.get("permalink_url")
        if not url:
            raise PublishError(self.name, "Response did not include a permalink", payload=text)
        logger.info(f"Uploaded to SoundCloud: {url}")
        return url
