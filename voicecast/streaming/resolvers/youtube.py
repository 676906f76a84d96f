"""
YouTube resolver using yt-dlp.

Resolves YouTube links and free-text titles to direct media URLs that
ffmpeg can read.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Any, Optional

import yt_dlp

from voicecast.streaming.errors import ExtractionFailed
from voicecast.streaming.resolvers.base import (
    BaseResolver,
    PlatformUrlRequest,
    ResolvedSource,
    SourceKind,
    TitleSearchRequest,
)

logger = logging.getLogger(__name__)


class YouTubeResolver(BaseResolver):
    """
    YouTube resolver using yt-dlp.

    Features:
    - Video ID extraction from the common URL shapes
    - Single-file format selection (ffmpeg gets one input URL)
    - Cookie support for authenticated content
    - Title search with top-result pairing
    - Error classification for private, unavailable and rate-limited videos
    """

    source_kind = SourceKind.YOUTUBE

    VIDEO_ID_PATTERNS = [
        r"(?:youtube\.com/watch\?(?:.*&)?v=|youtu\.be/|youtube\.com/embed/)([a-zA-Z0-9_-]{11})",
        r"youtube\.com/v/([a-zA-Z0-9_-]{11})",
        r"youtube\.com/shorts/([a-zA-Z0-9_-]{11})",
        r"youtube\.com/live/([a-zA-Z0-9_-]{11})",
    ]

    def __init__(
        self,
        cookies_file: Optional[str] = None,
        preferred_quality: str = "720",
        prefer_h264: bool = True,
    ):
        """
        Initialize YouTube resolver.

        Args:
            cookies_file: Path to YouTube cookies file (Netscape format)
            preferred_quality: Preferred video height (360, 480, 720, 1080)
            prefer_h264: Prefer h264 codec for cheaper transcoding
        """
        self.cookies_file = cookies_file
        self.preferred_quality = preferred_quality
        self.prefer_h264 = prefer_h264

    @classmethod
    def extract_video_id(cls, url: str) -> Optional[str]:
        """Extract the 11-character video ID from a YouTube URL."""
        for pattern in cls.VIDEO_ID_PATTERNS:
            match = re.search(pattern, url)
            if match:
                return match.group(1)
        return None

    @classmethod
    def is_platform_url(cls, url: str) -> bool:
        return cls.extract_video_id(url) is not None

    def _get_format_selector(self) -> str:
        """
        Build yt-dlp format selector string.

        Only progressive (audio+video) formats are selected so the
        resolved info carries a single stream URL.
        """
        q = self.preferred_quality
        if self.prefer_h264:
            return (
                f"best[height<={q}][vcodec^=avc][acodec!=none]/"
                f"best[height<={q}][acodec!=none]/"
                "best[acodec!=none][vcodec!=none]/best"
            )
        return f"best[height<={q}][acodec!=none]/best"

    def _ydl_options(self, flat: bool) -> dict[str, Any]:
        ydl_opts: dict[str, Any] = {
            "quiet": True,
            "no_warnings": True,
            "skip_download": True,
            "noplaylist": True,
        }
        if flat:
            ydl_opts["extract_flat"] = True
        else:
            ydl_opts["format"] = self._get_format_selector()

        if self.cookies_file and Path(self.cookies_file).exists():
            ydl_opts["cookiefile"] = self.cookies_file

        return ydl_opts

    def _extract_info(self, url: str, flat: bool = False) -> dict[str, Any]:
        """
        Extract video info using yt-dlp (blocking, run in executor).
        """
        with yt_dlp.YoutubeDL(self._ydl_options(flat)) as ydl:
            return ydl.extract_info(url, download=False)

    async def _run_extract(self, url: str, flat: bool = False) -> dict[str, Any]:
        loop = asyncio.get_running_loop()
        try:
            info = await loop.run_in_executor(None, self._extract_info, url, flat)
        except Exception as e:
            raise self._classify_error(url, e) from e

        if not info:
            raise ExtractionFailed(f"No info extracted for {url}", is_retryable=True)

        # Search queries wrap results in a playlist
        if info.get("_type") == "playlist" or "entries" in info:
            entries = [e for e in (info.get("entries") or []) if e]
            if not entries:
                raise ExtractionFailed(f"No results for {url}")
            info = entries[0]

        return info

    def _classify_error(self, url: str, error: Exception) -> ExtractionFailed:
        error_msg = str(error).lower()

        if "private video" in error_msg or "video is private" in error_msg:
            return ExtractionFailed(f"Video is private: {url}", original_error=error)
        if "video unavailable" in error_msg:
            return ExtractionFailed(f"Video unavailable: {url}", original_error=error)
        if "sign in" in error_msg or "confirm your age" in error_msg:
            return ExtractionFailed(
                f"Authentication required for video: {url}",
                is_retryable=True,
                original_error=error,
            )
        if "too many requests" in error_msg or "rate limit" in error_msg:
            return ExtractionFailed(
                f"Rate limited by YouTube: {url}",
                is_retryable=True,
                original_error=error,
            )
        return ExtractionFailed(
            f"Failed to extract YouTube info: {error}",
            is_retryable=True,
            original_error=error,
        )

    @staticmethod
    def _stream_url(info: dict[str, Any]) -> Optional[str]:
        stream_url = info.get("url")
        if stream_url:
            return stream_url
        formats = info.get("formats") or []
        if formats:
            return formats[-1].get("url")
        return None

    def _build_source(
        self,
        info: dict[str, Any],
        kind: SourceKind,
        title: Optional[str] = None,
        duration: Optional[float] = None,
    ) -> ResolvedSource:
        stream_url = self._stream_url(info)
        if not stream_url:
            raise ExtractionFailed(
                f"No stream URL found for video: {info.get('id', 'unknown')}",
                is_retryable=True,
            )

        if duration is None:
            duration = info.get("duration")

        return ResolvedSource(
            locator=stream_url,
            title=title or info.get("title") or "YouTube",
            kind=kind,
            duration_seconds=float(duration) if duration else None,
            headers=dict(info.get("http_headers") or {}),
        )

    async def resolve(self, request: PlatformUrlRequest) -> ResolvedSource:
        return await self.resolve_url(request.url)

    async def resolve_url(self, url: str) -> ResolvedSource:
        """
        Resolve a YouTube link to its stream URL, title and duration.

        Raises:
            ExtractionFailed: If yt-dlp fails or yields no stream URL
        """
        video_id = self.extract_video_id(url)
        if not video_id:
            raise ExtractionFailed(f"Could not extract video ID from URL: {url}")

        info = await self._run_extract(f"https://www.youtube.com/watch?v={video_id}")
        resolved = self._build_source(info, SourceKind.YOUTUBE)

        logger.info(
            f"Resolved YouTube video {video_id}: {resolved.title} "
            f"({info.get('width', 0)}x{info.get('height', 0)})"
        )
        return resolved

    async def search(self, query: str) -> dict[str, Any]:
        """Top search result metadata (no stream URL)."""
        return await self._run_extract(f"ytsearch1:{query}", flat=True)

    async def resolve_title(self, query: str) -> ResolvedSource:
        """
        Search by title and extract the top result.

        The search and the extraction run concurrently. The extraction
        result decides success; search metadata only refines the title.

        Raises:
            ExtractionFailed: If the extraction fails, regardless of the search
        """
        search_result, extracted = await asyncio.gather(
            self.search(query),
            self._run_extract(f"ytsearch1:{query}"),
            return_exceptions=True,
        )

        if isinstance(extracted, BaseException):
            if isinstance(extracted, ExtractionFailed):
                raise extracted
            raise ExtractionFailed(f"Failed to extract {query!r}: {extracted}") from extracted

        title = None
        duration = None
        if isinstance(search_result, BaseException):
            logger.warning(f"Search for {query!r} failed, using extracted metadata: {search_result}")
        else:
            title = search_result.get("title")
            duration = search_result.get("duration")

        resolved = self._build_source(
            extracted, SourceKind.YOUTUBE_SEARCH, title=title, duration=duration
        )
        logger.info(f"Resolved YouTube search {query!r} to {resolved.title}")
        return resolved


class YouTubeSearchResolver(BaseResolver):
    """Adapter exposing title search as its own resolver."""

    source_kind = SourceKind.YOUTUBE_SEARCH

    def __init__(self, youtube: YouTubeResolver):
        self.youtube = youtube

    async def resolve(self, request: TitleSearchRequest) -> ResolvedSource:
        return await self.youtube.resolve_title(request.query)
