"""
Stream Session Controller Tests

Drives the controller with a fake transport and a pipeline that spawns
the test interpreter instead of ffmpeg.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

import pytest

from voicecast.streaming.controller import StreamSessionController
from voicecast.streaming.errors import AlreadyActive, JoinFailed, NotActive, SourceNotFound
from voicecast.streaming.pipeline import OutcomeKind
from voicecast.streaming.resolvers import CatalogRequest, VideoParams, YouTubeResolver
from voicecast.streaming.session import SessionPhase, SessionState
from voicecast.streaming.source_resolver import SourceResolver

from tests.fixtures import (
    ENDLESS_SCRIPT,
    FAILING_SCRIPT,
    PROGRESS_SCRIPT,
    SHORT_SCRIPT,
    FakeTransport,
    RecordingNotifier,
    ScriptPipeline,
    StubResolver,
    make_source,
    wait_for_phase,
)

GUILD_ID = "100"
VIDEO_CHANNEL_ID = "200"
COMMAND_CHANNEL_ID = "1000"


@dataclass
class Harness:
    controller: StreamSessionController
    state: SessionState
    transport: FakeTransport
    pipeline: ScriptPipeline
    notifier: RecordingNotifier
    resolver: StubResolver
    phases: list[SessionPhase] = field(default_factory=list)

    async def play(self, token: str = "1"):
        return await self.controller.play(token, COMMAND_CHANNEL_ID, origin="origin-message")


def build_harness(
    script: str = ENDLESS_SCRIPT,
    transport: Optional[FakeTransport] = None,
    notifier: Optional[RecordingNotifier] = None,
    resolver: Optional[StubResolver] = None,
) -> Harness:
    state = SessionState()
    transport = transport or FakeTransport()
    notifier = notifier or RecordingNotifier()
    resolver = resolver or StubResolver(make_source())
    pipeline = ScriptPipeline(script)

    controller = StreamSessionController(
        state=state,
        resolver=SourceResolver(
            catalog=resolver,
            platform=resolver,
            search=resolver,
            direct=resolver,
            is_platform_url=YouTubeResolver.is_platform_url,
        ),
        transport=transport,
        pipeline=pipeline,
        notifier=notifier,
        guild_id=GUILD_ID,
        channel_id=VIDEO_CHANNEL_ID,
        default_params=VideoParams(),
    )
    harness = Harness(controller, state, transport, pipeline, notifier, resolver)
    state.listeners.append(lambda old, new: harness.phases.append(new))
    return harness


@pytest.fixture
def harness() -> Harness:
    return build_harness()


class TestPlay:
    """Starting a session."""

    @pytest.mark.asyncio
    async def test_play_then_stop_walks_every_phase(self, harness: Harness):
        source = await harness.play()

        assert source.title == "Movie_A"
        assert harness.state.phase == SessionPhase.ACTIVE
        assert harness.resolver.requests == [CatalogRequest(token="1")]
        assert harness.transport.joined[0][:2] == (GUILD_ID, VIDEO_CHANNEL_ID)

        await harness.controller.stop()

        assert harness.phases == [
            SessionPhase.JOINING,
            SessionPhase.ACTIVE,
            SessionPhase.STOPPING,
            SessionPhase.IDLE,
        ]
        assert harness.transport.leave_count == 1
        assert harness.controller.handle is None
        assert harness.pipeline.handles[0].done

    @pytest.mark.asyncio
    async def test_notifications(self, harness: Harness):
        await harness.play()
        await harness.controller.stop()

        names = harness.notifier.names()
        assert names[:2] == ["watching", "playing"]
        assert names[-2:] == ["idle", "finished"]
        playing = harness.notifier.events[1]
        assert playing[1] == "origin-message"
        assert playing[3] is not None  # end time from the known duration
        assert harness.notifier.events[-1] == ("finished", COMMAND_CHANNEL_ID)

    @pytest.mark.asyncio
    async def test_unknown_duration_has_no_end_time(self):
        harness = build_harness(resolver=StubResolver(make_source(duration_seconds=None)))

        await harness.play()
        await harness.controller.stop()

        assert harness.notifier.events[1][3] is None

    @pytest.mark.asyncio
    async def test_probed_params_used_for_session(self):
        params = VideoParams(width=1920, height=1080, fps=60)
        harness = build_harness(resolver=StubResolver(make_source(expected_params=params)))

        await harness.play()
        await harness.controller.stop()

        assert harness.transport.joined[0][2] == params
        assert harness.controller.default_params == VideoParams()

    @pytest.mark.asyncio
    async def test_play_link_classifies(self, harness: Harness):
        await harness.controller.play_link("some title", COMMAND_CHANNEL_ID)
        await harness.controller.stop()

        assert type(harness.resolver.requests[0]).__name__ == "TitleSearchRequest"

    @pytest.mark.asyncio
    async def test_resolution_failure_leaves_state_idle(self):
        harness = build_harness(resolver=StubResolver(error=SourceNotFound("Video 3 not found")))

        with pytest.raises(SourceNotFound):
            await harness.play("3")

        assert harness.state.phase == SessionPhase.IDLE
        assert harness.phases == []
        assert harness.transport.joined == []
        assert harness.pipeline.handles == []


class TestSingleSession:
    """At most one transmission at a time."""

    @pytest.mark.asyncio
    async def test_play_while_active(self, harness: Harness):
        await harness.play()

        with pytest.raises(AlreadyActive):
            await harness.play("2")

        assert harness.state.phase == SessionPhase.ACTIVE
        assert harness.state.title == "Movie_A"
        assert len(harness.resolver.requests) == 1
        assert len(harness.pipeline.handles) == 1

        await harness.controller.stop()

    @pytest.mark.asyncio
    async def test_play_during_resolution(self, harness: Harness):
        harness.resolver.gate = asyncio.Event()
        first = asyncio.create_task(harness.play("1"))
        await asyncio.sleep(0)

        with pytest.raises(AlreadyActive):
            await harness.play("2")

        harness.resolver.gate.set()
        await first
        assert len(harness.pipeline.handles) == 1
        await harness.controller.stop()

    @pytest.mark.asyncio
    async def test_play_again_after_stop(self, harness: Harness):
        await harness.play()
        await harness.controller.stop()

        await harness.play("2")

        assert harness.state.phase == SessionPhase.ACTIVE
        assert len(harness.pipeline.handles) == 2
        await harness.controller.stop()


class TestStop:

    @pytest.mark.asyncio
    async def test_stop_after_output_started(self, harness: Harness, caplog):
        await harness.play()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + 5
        while harness.transport.bytes_received == 0 and loop.time() < deadline:
            await asyncio.sleep(0.01)

        await harness.controller.stop()

        assert harness.transport.bytes_received > 0
        assert harness.state.phase == SessionPhase.IDLE
        assert not harness.transport.connected
        assert harness.notifier.names()[-2:] == ["idle", "finished"]
        # Cancellation is an outcome, not an error
        assert not [r for r in caplog.records if r.levelno >= logging.ERROR]

    @pytest.mark.asyncio
    async def test_stop_when_idle(self, harness: Harness):
        with pytest.raises(NotActive):
            await harness.controller.stop()

    @pytest.mark.asyncio
    async def test_double_stop(self, harness: Harness):
        await harness.play()
        await harness.controller.stop()

        with pytest.raises(NotActive):
            await harness.controller.stop()

        assert harness.transport.leave_count == 1

    @pytest.mark.asyncio
    async def test_stop_during_join(self):
        transport = FakeTransport()
        transport.join_gate = asyncio.Event()
        harness = build_harness(transport=transport)

        play = asyncio.create_task(harness.play())
        await wait_for_phase(harness.state, SessionPhase.JOINING)

        await harness.controller.stop()
        transport.join_gate.set()
        await play
        await wait_for_phase(harness.state, SessionPhase.IDLE)

        assert harness.phases == [
            SessionPhase.JOINING,
            SessionPhase.ACTIVE,
            SessionPhase.STOPPING,
            SessionPhase.IDLE,
        ]
        outcome = await harness.pipeline.handles[0].wait()
        assert outcome.kind == OutcomeKind.CANCELED
        assert transport.leave_count == 1


class TestSessionEnd:
    """The background task releases everything when playback ends."""

    @pytest.mark.asyncio
    async def test_natural_completion(self):
        harness = build_harness(script=SHORT_SCRIPT)

        await harness.play()
        await wait_for_phase(harness.state, SessionPhase.IDLE)

        assert harness.transport.bytes_received == 4096
        assert harness.transport.leave_count == 1
        assert harness.notifier.events[-1] == ("finished", COMMAND_CHANNEL_ID)
        assert harness.state.channel_info is None
        assert harness.state.title is None

    @pytest.mark.asyncio
    async def test_pipeline_failure_cleans_up(self, caplog):
        harness = build_harness(script=FAILING_SCRIPT)

        await harness.play()
        await wait_for_phase(harness.state, SessionPhase.IDLE)

        assert harness.transport.leave_count == 1
        assert "finished" in harness.notifier.names()
        assert "Playback failed" in caplog.text

    @pytest.mark.asyncio
    async def test_fast_failure_announces_before_release(self):
        harness = build_harness(script=FAILING_SCRIPT, notifier=RecordingNotifier(delay=0.5))

        await harness.play()
        await wait_for_phase(harness.state, SessionPhase.IDLE)
        await harness.controller._wait_session_task()

        assert harness.notifier.names() == ["watching", "playing", "idle", "finished"]

    @pytest.mark.asyncio
    async def test_reset_while_announcing_leaves_presence_idle(self):
        harness = build_harness(notifier=RecordingNotifier(delay=0.5))

        play = asyncio.create_task(harness.play())
        await wait_for_phase(harness.state, SessionPhase.ACTIVE)
        await harness.controller.on_voice_state_update(VIDEO_CHANNEL_ID, None, GUILD_ID)
        await play

        presence = [n for n in harness.notifier.names() if n in ("watching", "idle")]
        assert presence[-1] == "idle"
        assert harness.state.phase == SessionPhase.IDLE

    @pytest.mark.asyncio
    async def test_progress_output_does_not_wedge_session(self):
        harness = build_harness(script=PROGRESS_SCRIPT)

        await harness.play()
        await asyncio.sleep(1)
        await harness.controller.stop()

        assert harness.state.phase == SessionPhase.IDLE
        assert harness.transport.leave_count == 1

        await harness.play("2")
        assert harness.state.phase == SessionPhase.ACTIVE
        await harness.controller.stop()

    @pytest.mark.asyncio
    async def test_notifier_failures_do_not_block_cleanup(self):
        harness = build_harness(notifier=RecordingNotifier(fail=True))

        await harness.play()
        await harness.controller.stop()

        assert harness.state.phase == SessionPhase.IDLE
        assert harness.transport.leave_count == 1
        assert harness.notifier.names()[-2:] == ["idle", "finished"]

    @pytest.mark.asyncio
    async def test_leave_failure_does_not_block_cleanup(self, harness: Harness):
        async def broken_leave():
            raise RuntimeError("gateway gone")

        await harness.play()
        harness.transport.leave = broken_leave
        await harness.controller.stop()

        assert harness.state.phase == SessionPhase.IDLE
        assert harness.notifier.names()[-2:] == ["idle", "finished"]


class TestJoinFailures:

    @pytest.mark.asyncio
    async def test_join_failure_resets(self):
        harness = build_harness(transport=FakeTransport(join_error=RuntimeError("Missing permissions")))

        with pytest.raises(JoinFailed, match="Missing permissions"):
            await harness.play()

        assert harness.state.phase == SessionPhase.IDLE
        assert harness.phases == [SessionPhase.JOINING, SessionPhase.IDLE]
        assert harness.transport.leave_count == 1
        assert harness.pipeline.handles == []
        assert "idle" in harness.notifier.names()

    @pytest.mark.asyncio
    async def test_disconnect_during_join(self):
        transport = FakeTransport()
        transport.join_gate = asyncio.Event()
        harness = build_harness(transport=transport)

        play = asyncio.create_task(harness.play())
        await wait_for_phase(harness.state, SessionPhase.JOINING)
        await harness.controller.on_voice_state_update(VIDEO_CHANNEL_ID, None, GUILD_ID)
        transport.join_gate.set()

        with pytest.raises(JoinFailed):
            await play

        assert harness.state.phase == SessionPhase.IDLE
        assert harness.pipeline.handles == []


class TestVoiceMembership:
    """Out-of-band voice state changes."""

    @pytest.mark.asyncio
    async def test_disconnect_resets_immediately(self, harness: Harness):
        await harness.play()
        handle = harness.controller.handle

        await harness.controller.on_voice_state_update(VIDEO_CHANNEL_ID, None, GUILD_ID)

        status = harness.controller.status()
        assert status.phase == SessionPhase.IDLE
        assert not status.joined
        assert not status.playing
        assert handle.done
        assert harness.controller.handle is None
        assert "idle" in harness.notifier.names()

    @pytest.mark.asyncio
    async def test_disconnect_then_play(self, harness: Harness):
        await harness.play()
        await harness.controller.on_voice_state_update(VIDEO_CHANNEL_ID, None, GUILD_ID)

        await harness.play("2")

        assert harness.state.phase == SessionPhase.ACTIVE
        await harness.controller.stop()

    @pytest.mark.asyncio
    async def test_join_confirmation(self, harness: Harness):
        await harness.play()

        await harness.controller.on_voice_state_update(None, VIDEO_CHANNEL_ID, GUILD_ID)

        assert harness.state.joined_confirmed
        await harness.controller.stop()

    @pytest.mark.asyncio
    async def test_other_channel_is_not_confirmation(self, harness: Harness):
        await harness.play()

        await harness.controller.on_voice_state_update(None, "999", GUILD_ID)

        assert not harness.state.joined_confirmed
        await harness.controller.stop()

    @pytest.mark.asyncio
    async def test_leave_while_idle_is_ignored(self, harness: Harness):
        await harness.controller.on_voice_state_update(VIDEO_CHANNEL_ID, None, GUILD_ID)

        assert harness.phases == []
        assert harness.notifier.events == []


class TestShutdown:

    @pytest.mark.asyncio
    async def test_shutdown_active_session(self, harness: Harness):
        await harness.play()

        await harness.controller.shutdown()

        assert harness.state.phase == SessionPhase.IDLE
        assert harness.pipeline.handles[0].done
        assert harness.transport.leave_count == 1

    @pytest.mark.asyncio
    async def test_shutdown_when_idle(self, harness: Harness):
        await harness.controller.shutdown()

        assert harness.transport.leave_count == 0
