"""Combine a still image and an audio track into an MP4 with ffmpeg"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)


class TranscodeError(Exception):
    """Raised when the encoder fails. Carries its diagnostic output."""

    def __init__(self, message: str, stderr: str = "", returncode: Optional[int] = None):
        super().__init__(message)
        self.stderr = stderr
        self.returncode = returncode


class Transcoder:
    """
    Runs ffmpeg to loop a single frame over the soundtrack.

    When disabled (no video target) combine() is a no-op returning None.
    """

    def __init__(
        self,
        ffmpeg_binary: str = "ffmpeg",
        max_width: int = 1920,
        preset: str = "medium",
        profile: str = "main",
        enabled: bool = True,
    ):
        self.ffmpeg_binary = ffmpeg_binary
        self.max_width = max_width
        self.preset = preset
        self.profile = profile
        self.enabled = enabled

    def build_command(self, image_path: Path, audio_path: Path, output_path: Path) -> List[str]:
        # Even dimensions and yuv420p keep libx264 output playable everywhere
        video_filter = f"scale='min({self.max_width}, floor(iw/2)*2)':-2,format=yuv420p"
        return [
            self.ffmpeg_binary,
            "-y",
            "-loop", "1",
            "-i", str(image_path),
            "-i", str(audio_path),
            "-vf", video_filter,
            "-c:v", "libx264",
            "-preset", self.preset,
            "-profile:v", self.profile,
            "-c:a", "aac",
            "-shortest",
            "-movflags", "+faststart",
            str(output_path),
        ]

    async def combine(self, image_path: Path, audio_path: Path, output_path: Path) -> Optional[Path]:
        """
        Encode image + audio into output_path.

        Returns:
            output_path, or None when disabled

        Raises:
            TranscodeError: non-zero exit or the process could not be started
        """
        if not self.enabled:
            logger.debug("Transcoding disabled, skipping encoder")
            return None

        cmd = self.build_command(image_path, audio_path, output_path)
        logger.info(f"Encoding video {output_path}")
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            _, stderr = await process.communicate()
        except OSError as e:
            raise TranscodeError(f"Could not run {self.ffmpeg_binary}: {e}", stderr=str(e)) from e

        err_text = (stderr or b"").decode("utf-8", errors="replace").strip()
        if process.returncode != 0:
            logger.error(f"ffmpeg exited with {process.returncode}")
            raise TranscodeError(
                f"ffmpeg exited with {process.returncode}",
                stderr=err_text,
                returncode=process.returncode,
            )
        return output_path
