"""
Stream session controller.

Coordinates join -> resolve -> play -> cleanup for the single active
transmission:
- Rejects play requests while a session exists
- Owns the transport and the pipeline handle for the session's duration
- Runs the same release sequence on every exit path
- Reacts to out-of-band voice disconnection
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from voicecast.streaming.errors import AlreadyActive, JoinFailed, NotActive
from voicecast.streaming.pipeline import OutcomeKind, PipelineHandle, PlaybackPipeline
from voicecast.streaming.resolvers.base import ResolvedSource, VideoParams
from voicecast.streaming.session import ChannelInfo, SessionPhase, SessionState, SessionStatus
from voicecast.streaming.source_resolver import SourceResolver, catalog_request
from voicecast.streaming.transport import MediaTransport

logger = logging.getLogger(__name__)


class SessionNotifier(ABC):
    """Where the controller reports session events."""

    @abstractmethod
    async def playing(
        self, origin: Any, source: ResolvedSource, end_time: Optional[datetime]
    ) -> None:
        """Now-playing notice in reply to the command that started the session."""

    @abstractmethod
    async def finished(self, command_channel_id: Optional[str]) -> None:
        """Finished notice posted to the command channel."""

    @abstractmethod
    async def set_idle(self) -> None:
        """Presence: nothing playing."""

    @abstractmethod
    async def set_watching(self, title: str) -> None:
        """Presence: playing ``title``."""


class StreamSessionController:
    """
    State machine for the one transmission session.

    Usage:
        controller = StreamSessionController(state, resolver, transport, pipeline,
                                             notifier, guild_id, channel_id, params)
        await controller.play("2", command_channel_id="123", origin=message)
        await controller.stop()
    """

    def __init__(
        self,
        state: SessionState,
        resolver: SourceResolver,
        transport: MediaTransport,
        pipeline: PlaybackPipeline,
        notifier: SessionNotifier,
        guild_id: str,
        channel_id: str,
        default_params: VideoParams,
    ):
        self.state = state
        self.resolver = resolver
        self.transport = transport
        self.pipeline = pipeline
        self.notifier = notifier
        self.guild_id = guild_id
        self.channel_id = channel_id
        self.default_params = default_params

        self._handle: Optional[PipelineHandle] = None
        self._session_task: Optional[asyncio.Task] = None
        self._play_lock = asyncio.Lock()
        self._resetting = False

    @property
    def handle(self) -> Optional[PipelineHandle]:
        return self._handle

    def status(self) -> SessionStatus:
        return self.state.status()

    # ============ Commands ============

    def _ensure_idle(self) -> None:
        # Checked before the first await so overlapping requests cannot both pass
        if not self.state.is_idle or self._play_lock.locked() or self._resetting:
            raise AlreadyActive()

    async def play(
        self, token: str, command_channel_id: str, origin: Any = None
    ) -> ResolvedSource:
        """
        Play a catalog entry by name or 1-based index.

        Raises:
            AlreadyActive: A session is already running
            SourceNotFound: No catalog entry matches
            JoinFailed: The voice connection could not be made
        """
        self._ensure_idle()
        async with self._play_lock:
            source = await self.resolver.resolve(catalog_request(token))
            return await self._start_session(source, command_channel_id, origin)

    async def play_link(
        self, link: str, command_channel_id: str, origin: Any = None
    ) -> ResolvedSource:
        """
        Play a platform link, a search title or a direct link.

        Raises:
            AlreadyActive: A session is already running
            ExtractionFailed: The link or title could not be resolved
            JoinFailed: The voice connection could not be made
        """
        self._ensure_idle()
        async with self._play_lock:
            source = await self.resolver.resolve(self.resolver.classify(link))
            return await self._start_session(source, command_channel_id, origin)

    async def stop(self) -> None:
        """
        Stop the running session and wait until it is idle.

        Raises:
            NotActive: Nothing is playing
        """
        phase = self.state.phase
        if phase == SessionPhase.IDLE:
            raise NotActive()

        if phase == SessionPhase.JOINING:
            # Honoured as soon as the pipeline exists
            logger.info("Stop requested while joining")
            self.state.stop_requested = True
            return

        if phase == SessionPhase.ACTIVE:
            logger.info("Stop command received")
            self._begin_stop()

        await self._wait_session_task()

    async def shutdown(self) -> None:
        """Release everything on process exit."""
        if self.state.is_idle and self._handle is None:
            return
        logger.info("Shutting down active session")
        await self.force_reset(reason="shutdown")

    # ============ Voice membership ============

    async def on_voice_state_update(
        self,
        before_channel_id: Optional[str],
        after_channel_id: Optional[str],
        guild_id: Optional[str] = None,
    ) -> None:
        """
        Track the bot's own voice membership.

        Leaving every channel forces the session back to IDLE. Joining the
        target channel confirms the join for status reporting.
        """
        if before_channel_id and not after_channel_id:
            if self.state.phase in (SessionPhase.JOINING, SessionPhase.ACTIVE):
                logger.warning("Disconnected from voice, resetting session")
                await self.force_reset(reason="voice disconnect")
            else:
                self.state.joined_confirmed = False
            return

        if after_channel_id and not before_channel_id:
            if (
                str(after_channel_id) == str(self.channel_id)
                and (guild_id is None or str(guild_id) == str(self.guild_id))
                and not self.state.is_idle
            ):
                self.state.joined_confirmed = True

    async def force_reset(self, reason: str) -> None:
        """Release resources and go straight to IDLE from any phase."""
        if self._resetting:
            return
        self._resetting = True
        try:
            await self._release(reason=reason)
        finally:
            self.state.reset()
            self._resetting = False

    # ============ Internals ============

    async def _start_session(
        self, source: ResolvedSource, command_channel_id: str, origin: Any
    ) -> ResolvedSource:
        params = source.expected_params or self.default_params

        self.state.transition(SessionPhase.JOINING)
        self.state.channel_info = ChannelInfo(
            guild_id=self.guild_id,
            channel_id=self.channel_id,
            command_channel_id=command_channel_id,
        )
        self.state.title = source.title

        try:
            await self.transport.join(self.guild_id, self.channel_id, params)
        except Exception as e:
            logger.error(f"Failed to join voice channel {self.channel_id}: {e}")
            await self.force_reset(reason="join failed")
            raise JoinFailed(f"Could not join voice channel: {e}") from e

        if self.state.phase != SessionPhase.JOINING:
            # Reset by a disconnect while the join was in flight
            try:
                await self.transport.leave()
            except Exception as e:
                logger.warning(f"Error leaving voice: {e}")
            raise JoinFailed("Disconnected from voice while joining")

        logger.info(f"Started playing {source.locator}")
        try:
            handle = self.pipeline.start(source.locator, self.transport, params, source.headers)
        except Exception:
            await self.force_reset(reason="pipeline start failed")
            raise
        self._handle = handle
        self.state.transition(SessionPhase.ACTIVE)
        announced = asyncio.Event()
        self._session_task = asyncio.create_task(
            self._run_session(handle, announced), name="stream-session"
        )

        try:
            await self._notify("presence", self.notifier.set_watching(source.title))

            end_time = None
            if source.duration_seconds:
                end_time = datetime.now(timezone.utc) + timedelta(seconds=source.duration_seconds)
            await self._notify("playing", self.notifier.playing(origin, source, end_time))
        finally:
            announced.set()

        if self._handle is not handle:
            # Force-reset while announcing; presence must end up idle
            await self._notify("presence", self.notifier.set_idle())

        if self.state.stop_requested and self.state.phase == SessionPhase.ACTIVE:
            self._begin_stop()

        return source

    def _begin_stop(self) -> None:
        self.state.transition(SessionPhase.STOPPING)
        if self._handle is not None:
            self._handle.cancel()

    async def _wait_session_task(self) -> None:
        task = self._session_task
        if task is not None and not task.done():
            await asyncio.shield(task)

    async def _run_session(self, handle: PipelineHandle, announced: asyncio.Event) -> None:
        outcome = await handle.wait()
        # Idle presence and the finished notice go out after the playing ones
        await announced.wait()

        if self._handle is not handle:
            # A forced reset already released this session
            return

        if outcome.kind == OutcomeKind.COMPLETED:
            logger.info(f"Finished playing video: {handle.locator}")
        elif outcome.kind == OutcomeKind.CANCELED:
            logger.info(f"Playback stopped: {handle.locator}")
        else:
            logger.error(f"Playback failed for {handle.locator}: {outcome.cause}")

        if self.state.phase == SessionPhase.ACTIVE:
            self.state.transition(SessionPhase.STOPPING)

        try:
            await self._release(reason=outcome.kind.value)
        finally:
            if self.state.phase == SessionPhase.STOPPING:
                self.state.transition(SessionPhase.IDLE)
            self.state.clear()

    async def _release(self, reason: str) -> None:
        """
        Release sequence shared by every exit path.

        Each step runs even if an earlier one fails.
        """
        logger.debug(f"Releasing session ({reason})")
        command_channel_id = (
            self.state.channel_info.command_channel_id if self.state.channel_info else None
        )

        handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()
            await handle.wait()

        try:
            self.transport.stop_stream()
        except Exception as e:
            logger.warning(f"Error stopping stream: {e}")

        try:
            await self.transport.leave()
        except Exception as e:
            logger.warning(f"Error leaving voice: {e}")

        self.state.channel_info = None

        await self._notify("presence", self.notifier.set_idle())
        await self._notify("finished", self.notifier.finished(command_channel_id))

    async def _notify(self, what: str, coro: Any) -> None:
        try:
            await coro
        except Exception as e:
            logger.warning(f"Failed to send {what} notification: {e}")
