"""
Source resolvers.

Turn catalog tokens, platform links, search titles and direct links into
playable sources.
"""

from voicecast.streaming.resolvers.base import (
    BaseResolver,
    CatalogRequest,
    DirectLinkRequest,
    PlatformUrlRequest,
    ResolvedSource,
    SourceKind,
    SourceRequest,
    TitleSearchRequest,
    VideoParams,
)
from voicecast.streaming.resolvers.direct import DirectLinkResolver
from voicecast.streaming.resolvers.local import LocalCatalogResolver
from voicecast.streaming.resolvers.youtube import YouTubeResolver, YouTubeSearchResolver

__all__ = [
    # Base
    "BaseResolver",
    "ResolvedSource",
    "SourceKind",
    "VideoParams",
    # Requests
    "CatalogRequest",
    "DirectLinkRequest",
    "PlatformUrlRequest",
    "SourceRequest",
    "TitleSearchRequest",
    # Resolvers
    "DirectLinkResolver",
    "LocalCatalogResolver",
    "YouTubeResolver",
    "YouTubeSearchResolver",
]
