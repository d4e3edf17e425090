"""Scratch media storage: content-identity naming, download, scoped release, pruning"""

import asyncio
import hashlib
import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urlsplit

import aiohttp

from trackdrop.pipeline.models import Attachment, TemporaryAsset

logger = logging.getLogger(__name__)


def redact_url(url: str) -> str:
    """Host and file name only. Chat file URLs carry the bot token in their path."""
    parts = urlsplit(url)
    name = parts.path.rsplit("/", 1)[-1]
    if not parts.netloc:
        return name or "<url>"
    return f"{parts.scheme}://{parts.netloc}/.../{name}"


class DownloadError(Exception):
    """Raised when a remote attachment cannot be fetched or stored.

    The message never contains the full URL; `url` keeps it for callers.
    """

    def __init__(self, url: str, reason: str):
        safe_url = redact_url(url)
        path = urlsplit(url).path
        reason = reason.replace(url, safe_url)
        if len(path) > 1:
            reason = reason.replace(path, "/...")
        super().__init__(f"Failed to download {safe_url}: {reason}")
        self.url = url
        self.reason = reason


def content_hash(*sources: str) -> str:
    """sha256 hex digest of the source identifiers, newline-joined"""
    return hashlib.sha256("\n".join(sources).encode()).hexdigest()


class AssetScope:
    """Assets acquired during one run. Released together by AssetStore.scope()."""

    def __init__(self, store: "AssetStore"):
        self._store = store
        self.assets: List[TemporaryAsset] = []

    async def store(self, kind: str, attachment: Attachment) -> TemporaryAsset:
        asset = await self._store.store(kind, attachment)
        self.assets.append(asset)
        return asset

    def reserve(self, kind: str, sources: Sequence[TemporaryAsset], extension: str) -> TemporaryAsset:
        """Record a derived output path before it is written"""
        asset = self._store.derive(kind, sources, extension)
        self.assets.append(asset)
        return asset


class AssetStore:
    """
    Downloads attachments into a scratch directory.

    Local names are sha256(source URL) plus the original extension, so the
    same remote file always lands on the same path.
    """

    def __init__(self, scratch_dir: Path, timeout: float = 120.0):
        self.scratch_dir = Path(scratch_dir)
        self.timeout = timeout

    def path_for(self, source_url: str, extension: str) -> Path:
        return self.scratch_dir / f"{content_hash(source_url)}{extension.lower()}"

    def derive(self, kind: str, sources: Sequence[TemporaryAsset], extension: str) -> TemporaryAsset:
        urls = [s.source_url for s in sources]
        digest = content_hash(*urls)
        return TemporaryAsset(
            kind=kind,
            source_url="\n".join(urls),
            path=self.scratch_dir / f"{digest}{extension.lower()}",
            content_hash=digest,
        )

    async def store(self, kind: str, attachment: Attachment) -> TemporaryAsset:
        """
        Fetch an attachment fully into memory and write it atomically.

        Args:
            kind: "audio", "image", ...
            attachment: Remote file reference

        Returns:
            The stored asset

        Raises:
            DownloadError: network failure, non-success status or a scratch
                write failure. Not retried.
        """
        path = self.path_for(attachment.url, attachment.extension)
        data = await self._fetch(attachment.url)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._write_atomic, path, data)
        except OSError as e:
            raise DownloadError(
                attachment.url, f"could not write to scratch directory: {e.strerror or e}"
            ) from e
        logger.info(f"Stored {kind} {attachment.filename} ({len(data)} bytes) at {path}")
        return TemporaryAsset(
            kind=kind,
            source_url=attachment.url,
            path=path,
            content_hash=content_hash(attachment.url),
        )

    async def _fetch(self, url: str) -> bytes:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(url) as response:
                    if response.status >= 400:
                        raise DownloadError(url, f"HTTP {response.status}")
                    return await response.read()
        except aiohttp.ClientError as e:
            raise DownloadError(url, str(e) or e.__class__.__name__) from e
        except asyncio.TimeoutError as e:
            raise DownloadError(url, f"timed out after {self.timeout:.0f}s") from e

    def _write_atomic(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        partial = path.with_name(f"{path.name}.{uuid.uuid4().hex}.part")
        try:
            partial.write_bytes(data)
            os.replace(partial, path)
        except OSError:
            if partial.exists():
                partial.unlink()
            raise

    def release_all(self, assets: Iterable[TemporaryAsset]) -> List[Tuple[Path, OSError]]:
        """
        Delete every asset path. Never raises.

        Returns:
            (path, error) for each deletion that failed; missing files are not failures
        """
        failures: List[Tuple[Path, OSError]] = []
        seen = set()
        for asset in assets:
            if asset.path in seen:
                continue
            seen.add(asset.path)
            try:
                asset.path.unlink()
                logger.debug(f"Deleted {asset.kind} {asset.path}")
            except FileNotFoundError:
                logger.debug(f"Already gone: {asset.path}")
            except OSError as e:
                failures.append((asset.path, e))
        if failures:
            logger.error(
                "Failed to delete temporary files: "
                + ", ".join(f"{p} ({e})" for p, e in failures)
            )
        return failures

    @asynccontextmanager
    async def scope(self) -> AsyncIterator[AssetScope]:
        """Yield an AssetScope whose assets are released exactly once on exit"""
        scope = AssetScope(self)
        try:
            yield scope
        finally:
            self.release_all(scope.assets)

    def prune_stale(self, max_age_hours: int = 24, now: Optional[float] = None) -> int:
        """
        Remove scratch files older than max_age_hours, left behind by a run
        that never reached cleanup (e.g. the process was killed).

        Returns:
            Number of files pruned
        """
        if not self.scratch_dir.exists():
            return 0
        cutoff = (now if now is not None else time.time()) - max_age_hours * 3600
        pruned = 0
        for p in self.scratch_dir.iterdir():
            try:
                if p.is_file() and p.stat().st_mtime < cutoff:
                    p.unlink()
                    pruned += 1
            except OSError as e:
                logger.debug(f"Could not delete {p}: {e}")
        if pruned:
            logger.info(f"Pruned {pruned} stale scratch files")
        return pruned
