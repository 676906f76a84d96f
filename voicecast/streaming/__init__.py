"""
Streaming core for voicecast.

Components:
- Source resolution (catalog, YouTube, title search, direct links)
- Playback pipeline (one ffmpeg process per transmission)
- Session controller (single active transmission, unconditional cleanup)
"""

from voicecast.streaming.controller import SessionNotifier, StreamSessionController
from voicecast.streaming.errors import (
    AlreadyActive,
    ExtractionFailed,
    InvalidTransition,
    JoinFailed,
    NotActive,
    ResolverError,
    SessionError,
    SourceNotFound,
    VoicecastError,
)
from voicecast.streaming.pipeline import (
    OutcomeKind,
    PipelineHandle,
    PlaybackOutcome,
    PlaybackPipeline,
)
from voicecast.streaming.session import (
    ChannelInfo,
    SessionPhase,
    SessionState,
    SessionStatus,
)
from voicecast.streaming.source_resolver import SourceResolver, catalog_request, classify_link
from voicecast.streaming.transport import MediaTransport, video_encoder_args

__all__ = [
    # Controller
    "SessionNotifier",
    "StreamSessionController",
    # Errors
    "AlreadyActive",
    "ExtractionFailed",
    "InvalidTransition",
    "JoinFailed",
    "NotActive",
    "ResolverError",
    "SessionError",
    "SourceNotFound",
    "VoicecastError",
    # Pipeline
    "OutcomeKind",
    "PipelineHandle",
    "PlaybackOutcome",
    "PlaybackPipeline",
    # Session
    "ChannelInfo",
    "SessionPhase",
    "SessionState",
    "SessionStatus",
    # Resolution
    "SourceResolver",
    "catalog_request",
    "classify_link",
    # Transport
    "MediaTransport",
    "video_encoder_args",
]
