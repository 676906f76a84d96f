"""
Test Fixtures

Fakes for the transport, notifier, resolvers and ffmpeg.
"""

from .fakes import (
    ENDLESS_SCRIPT,
    FAILING_SCRIPT,
    PROGRESS_FAILING_SCRIPT,
    PROGRESS_SCRIPT,
    SHORT_SCRIPT,
    STUBBORN_SCRIPT,
    FakeTransport,
    RecordingNotifier,
    ScriptPipeline,
    StubResolver,
    make_source,
    wait_for_phase,
)

__all__ = [
    "ENDLESS_SCRIPT",
    "FAILING_SCRIPT",
    "PROGRESS_FAILING_SCRIPT",
    "PROGRESS_SCRIPT",
    "SHORT_SCRIPT",
    "STUBBORN_SCRIPT",
    "FakeTransport",
    "RecordingNotifier",
    "ScriptPipeline",
    "StubResolver",
    "make_source",
    "wait_for_phase",
]
