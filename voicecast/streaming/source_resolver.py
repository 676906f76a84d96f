"""
Central source resolver.

Classifies user input into exactly one request variant and routes it to
the matching resolver.
"""

import logging
import re
from typing import Callable

from voicecast.streaming.resolvers.base import (
    BaseResolver,
    CatalogRequest,
    DirectLinkRequest,
    PlatformUrlRequest,
    ResolvedSource,
    SourceRequest,
    TitleSearchRequest,
)

logger = logging.getLogger(__name__)

_URL_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


def catalog_request(token: str) -> CatalogRequest:
    """Requests issued by ``play`` only ever address the catalog."""
    return CatalogRequest(token=token)


def classify_link(
    link: str,
    is_platform_url: Callable[[str], bool],
) -> SourceRequest:
    """
    Classify a ``playlink`` argument.

    Precedence: platform URL, then anything that looks like a URL or an
    absolute path (direct link), then free text (title search).
    """
    link = link.strip()
    if is_platform_url(link):
        return PlatformUrlRequest(url=link)
    if _URL_SCHEME.match(link) or link.startswith("/"):
        return DirectLinkRequest(url=link)
    return TitleSearchRequest(query=link)


class SourceResolver:
    """
    Routes each request variant to its resolver.

    Usage:
        resolver = SourceResolver(local, youtube, search, direct)
        source = await resolver.resolve(catalog_request("2"))
    """

    def __init__(
        self,
        catalog: BaseResolver,
        platform: BaseResolver,
        search: BaseResolver,
        direct: BaseResolver,
        is_platform_url: Callable[[str], bool],
    ):
        self.catalog = catalog
        self.platform = platform
        self.search = search
        self.direct = direct
        self.is_platform_url = is_platform_url

    def classify(self, link: str) -> SourceRequest:
        return classify_link(link, self.is_platform_url)

    async def resolve(self, request: SourceRequest) -> ResolvedSource:
        """
        Resolve a request with the resolver for its variant.

        Raises:
            SourceNotFound: Catalog miss
            ExtractionFailed: Platform or network failure
        """
        if isinstance(request, CatalogRequest):
            resolver = self.catalog
        elif isinstance(request, PlatformUrlRequest):
            resolver = self.platform
        elif isinstance(request, TitleSearchRequest):
            resolver = self.search
        elif isinstance(request, DirectLinkRequest):
            resolver = self.direct
        else:
            raise TypeError(f"Unsupported source request: {request!r}")

        logger.debug(f"Resolving {request!r} with {type(resolver).__name__}")
        return await resolver.resolve(request)
