"""
Direct link resolver.

Passes an arbitrary URL or path straight to the encoder.
"""

import logging

from voicecast.streaming.resolvers.base import (
    BaseResolver,
    DirectLinkRequest,
    ResolvedSource,
    SourceKind,
)

logger = logging.getLogger(__name__)

DIRECT_LINK_TITLE = "URL"


class DirectLinkResolver(BaseResolver):
    """Treats the link as an opaque locator with no known metadata."""

    source_kind = SourceKind.DIRECT

    async def resolve(self, request: DirectLinkRequest) -> ResolvedSource:
        logger.info(f"Using direct link: {request.url}")
        return ResolvedSource(
            locator=request.url,
            title=DIRECT_LINK_TITLE,
            kind=SourceKind.DIRECT,
        )
