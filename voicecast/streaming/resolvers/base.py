"""
Base resolver and common types.

Provides the abstract base class for source resolvers, the closed set of
resolution requests, and the resolved source model.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from voicecast.config import StreamConfig
from voicecast.media.ffprobe import MediaInfo

logger = logging.getLogger(__name__)


class SourceKind(str, Enum):
    """Where a resolved source came from."""

    LOCAL = "local"
    YOUTUBE = "youtube"
    YOUTUBE_SEARCH = "youtube_search"
    DIRECT = "direct"


@dataclass(frozen=True)
class CatalogRequest:
    """Name or 1-based index into the local catalog."""

    token: str


@dataclass(frozen=True)
class PlatformUrlRequest:
    """Link to a recognized video-hosting platform."""

    url: str


@dataclass(frozen=True)
class TitleSearchRequest:
    """Free text to search for on the hosting platform."""

    query: str


@dataclass(frozen=True)
class DirectLinkRequest:
    """Anything else: handed to the encoder as-is."""

    url: str


SourceRequest = Union[CatalogRequest, PlatformUrlRequest, TitleSearchRequest, DirectLinkRequest]


@dataclass(frozen=True)
class VideoParams:
    """
    Streaming parameters for one encode.

    The configured defaults are built once from StreamConfig; per-session
    overrides are derived copies and never touch the defaults.
    """

    width: int = 1280
    height: int = 720
    fps: int = 30
    bitrate_kbps: int = 1000
    max_bitrate_kbps: int = 2500
    video_codec: str = "H264"
    h26x_preset: str = "ultrafast"
    hardware_accelerated_decoding: bool = False

    @classmethod
    def from_config(cls, stream: StreamConfig) -> "VideoParams":
        return cls(
            width=stream.width,
            height=stream.height,
            fps=stream.fps,
            bitrate_kbps=stream.bitrate_kbps,
            max_bitrate_kbps=stream.max_bitrate_kbps,
            video_codec=stream.video_codec.upper(),
            h26x_preset=stream.h26x_preset,
            hardware_accelerated_decoding=stream.hardware_accelerated_decoding,
        )

    def with_media_info(self, info: MediaInfo) -> "VideoParams":
        """
        Match resolution, frame rate and bitrate to a probed source.

        Fields ffprobe could not determine keep their current value.
        """
        video = info.primary_video
        if video is None:
            return self

        changes: dict[str, Any] = {}
        if video.width and video.height:
            changes["width"] = video.width
            changes["height"] = video.height

        fps = video.frame_rate
        if fps:
            changes["fps"] = round(fps)

        bit_rate = video.bit_rate or info.bit_rate
        if bit_rate:
            changes["bitrate_kbps"] = bit_rate // 1000
            changes["max_bitrate_kbps"] = (video.max_bit_rate or bit_rate) // 1000

        return replace(self, **changes)


@dataclass(frozen=True)
class ResolvedSource:
    """
    A playable source with display metadata.

    Attributes:
        locator: Path or URL handed to the encoder
        title: Display title
        kind: Which strategy produced this source
        duration_seconds: Length when known
        expected_params: Session-only parameter override, None = use defaults
        path: Local file path for catalog sources
        headers: HTTP headers the encoder must send with the locator
    """

    locator: str
    title: str
    kind: SourceKind
    duration_seconds: Optional[float] = None
    expected_params: Optional[VideoParams] = None
    path: Optional[Path] = None
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def is_local(self) -> bool:
        return self.kind == SourceKind.LOCAL


class BaseResolver(ABC):
    """
    Abstract base class for source resolvers.

    Each resolver handles one request variant and turns it into a
    ResolvedSource or raises a ResolverError subclass.
    """

    source_kind: SourceKind

    @abstractmethod
    async def resolve(self, request: Any) -> ResolvedSource:
        """
        Resolve a request to a playable source.

        Raises:
            SourceNotFound: For catalog misses
            ExtractionFailed: For platform or network failures
        """
