"""
Local catalog resolver.

Resolves catalog tokens to files on disk and optionally matches the
stream parameters to the file.
"""

import logging
from typing import Optional

from voicecast.media.catalog import VideoCatalog
from voicecast.media.ffprobe import FFprobeAnalyzer, MediaInfo, ProbeError
from voicecast.streaming.errors import SourceNotFound
from voicecast.streaming.resolvers.base import (
    BaseResolver,
    CatalogRequest,
    ResolvedSource,
    SourceKind,
    VideoParams,
)

logger = logging.getLogger(__name__)


class LocalCatalogResolver(BaseResolver):
    """
    Catalog resolver.

    Features:
    - Lookup by 1-based index or normalized name
    - Duration from ffprobe when the probe succeeds
    - Optional per-session parameter override from the probed stream
    """

    source_kind = SourceKind.LOCAL

    def __init__(
        self,
        catalog: VideoCatalog,
        analyzer: FFprobeAnalyzer,
        default_params: VideoParams,
        respect_video_params: bool = False,
    ):
        self.catalog = catalog
        self.analyzer = analyzer
        self.default_params = default_params
        self.respect_video_params = respect_video_params

    async def resolve(self, request: CatalogRequest) -> ResolvedSource:
        entry = self.catalog.lookup(request.token)
        if entry is None:
            raise SourceNotFound(f"Video {request.token} not found")

        locator = str(entry.path)
        info = await self._probe(locator)

        expected_params = None
        if self.respect_video_params:
            logger.info(f"Checking video params {locator}")
            if info is not None:
                expected_params = self.default_params.with_media_info(info)
                logger.info(
                    f"Using source params {expected_params.width}x{expected_params.height}"
                    f"@{expected_params.fps} {expected_params.bitrate_kbps}kbps"
                )
            else:
                logger.error("Unable to determine resolution, using static resolution")

        logger.info(f"Resolved local video: {locator}")
        return ResolvedSource(
            locator=locator,
            title=entry.name,
            kind=SourceKind.LOCAL,
            duration_seconds=info.duration_seconds if info else None,
            expected_params=expected_params,
            path=entry.path,
        )

    async def _probe(self, locator: str) -> Optional[MediaInfo]:
        try:
            return await self.analyzer.analyze(locator)
        except ProbeError as e:
            logger.warning(f"Probe failed for {locator}: {e}")
            return None
