"""
Playback pipeline.

Runs one ffmpeg process per transmission and feeds its output to the
transport. Each run is wrapped in a PipelineHandle that exposes a single
idempotent cancel and a single outcome.
"""

import asyncio
import logging
import re
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from voicecast.streaming.resolvers.base import VideoParams
from voicecast.streaming.transport import MediaTransport

logger = logging.getLogger(__name__)

LINE_BREAK = re.compile(rb"[\r\n]")


class OutcomeKind(str, Enum):
    """How a transmission ended."""

    COMPLETED = "completed"
    CANCELED = "canceled"
    FAILED = "failed"


@dataclass(frozen=True)
class PlaybackOutcome:
    """Terminal result of a pipeline handle."""

    kind: OutcomeKind
    cause: Optional[str] = None

    @classmethod
    def completed(cls) -> "PlaybackOutcome":
        return cls(OutcomeKind.COMPLETED)

    @classmethod
    def canceled(cls) -> "PlaybackOutcome":
        return cls(OutcomeKind.CANCELED)

    @classmethod
    def failed(cls, cause: str) -> "PlaybackOutcome":
        return cls(OutcomeKind.FAILED, cause)


class PipelineHandle:
    """
    Owned, cancelable unit representing one in-flight transmission.

    The wrapped task terminates its ffmpeg process before it finishes, so
    once ``wait()`` returns nothing is transmitting anymore.
    """

    def __init__(self, task: "asyncio.Task[PlaybackOutcome]", locator: str):
        self._task = task
        self.locator = locator
        self._cancel_requested = False

    @property
    def done(self) -> bool:
        return self._task.done()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    def cancel(self) -> None:
        """Request termination. No-op if already finished or canceled."""
        if self._cancel_requested or self._task.done():
            return
        self._cancel_requested = True
        self._task.cancel()

    async def wait(self) -> PlaybackOutcome:
        """
        Wait for the outcome. Repeated calls return the same outcome.

        Never raises for a pipeline error; that becomes a FAILED outcome.
        """
        try:
            # Shielded so a caller being cancelled never cancels the pipeline
            return await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if self._task.cancelled():
                return PlaybackOutcome.canceled()
            raise
        except Exception as e:
            logger.debug("Pipeline task raised", exc_info=True)
            return PlaybackOutcome.failed(f"Pipeline error: {e}")


class PlaybackPipeline:
    """
    FFmpeg process launcher.

    Usage:
        pipeline = PlaybackPipeline(ffmpeg_path="ffmpeg")
        handle = pipeline.start(source.locator, transport, params)
        outcome = await handle.wait()
    """

    STDERR_TAIL_LINES = 20
    STDERR_CHUNK_SIZE = 4096

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        log_level: str = "warning",
        kill_timeout: float = 5.0,
    ):
        self.ffmpeg_path = ffmpeg_path
        self.log_level = log_level
        self.kill_timeout = kill_timeout

    def build_command(
        self,
        locator: str,
        params: VideoParams,
        output_args: list[str],
        headers: Optional[dict[str, str]] = None,
    ) -> list[str]:
        """
        Build the ffmpeg command for one transmission.

        Input is always read at native rate since the output is live.
        """
        cmd = [
            self.ffmpeg_path, "-hide_banner", "-nostats",
            "-loglevel", self.log_level, "-nostdin",
        ]

        if params.hardware_accelerated_decoding:
            cmd.extend(["-hwaccel", "auto"])

        if locator.startswith(("http://", "https://")):
            cmd.extend([
                "-reconnect", "1",
                "-reconnect_streamed", "1",
                "-reconnect_delay_max", "5",
            ])
            if headers:
                header_lines = "".join(f"{k}: {v}\r\n" for k, v in headers.items())
                cmd.extend(["-headers", header_lines])

        cmd.extend(["-re", "-i", locator])
        cmd.extend(output_args)
        return cmd

    def start(
        self,
        locator: str,
        transport: MediaTransport,
        params: VideoParams,
        headers: Optional[dict[str, str]] = None,
    ) -> PipelineHandle:
        """Begin a transmission. Returns as soon as the task is created."""
        cmd = self.build_command(locator, params, transport.output_args(params), headers)
        task = asyncio.create_task(self._run(cmd, transport), name=f"playback:{locator}")
        return PipelineHandle(task, locator)

    async def _run(self, cmd: list[str], transport: MediaTransport) -> PlaybackOutcome:
        logger.info(f"Starting ffmpeg: {' '.join(cmd[:8])}...")
        logger.debug(f"FFmpeg command: {' '.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return PlaybackOutcome.failed(f"Cannot start ffmpeg: {e}")

        stderr_tail: deque[str] = deque(maxlen=self.STDERR_TAIL_LINES)
        stderr_task = asyncio.create_task(self._drain_stderr(process, stderr_tail))

        try:
            await transport.stream(process.stdout)
            try:
                returncode = await asyncio.wait_for(process.wait(), timeout=self.kill_timeout)
            except asyncio.TimeoutError:
                # Transport stopped reading while ffmpeg was still writing
                return PlaybackOutcome.failed("Transport ended before ffmpeg finished")
        except asyncio.CancelledError:
            logger.info("Playback cancelled, terminating ffmpeg")
            raise
        except Exception as e:
            logger.debug("Transport stream error", exc_info=True)
            return PlaybackOutcome.failed(f"Transport error: {e}")
        finally:
            try:
                transport.stop_stream()
            except Exception as e:
                logger.warning(f"Error stopping transport stream: {e}")
            await self._terminate(process)
            await stderr_task

        if returncode != 0:
            tail = "\n".join(stderr_tail)
            return PlaybackOutcome.failed(f"ffmpeg exited with code {returncode}: {tail}")

        return PlaybackOutcome.completed()

    async def _drain_stderr(
        self, process: asyncio.subprocess.Process, tail: "deque[str]"
    ) -> None:
        # Progress reports end in a bare carriage return, so read in chunks
        assert process.stderr is not None
        pending = b""
        try:
            while True:
                chunk = await process.stderr.read(self.STDERR_CHUNK_SIZE)
                if not chunk:
                    break
                *lines, pending = LINE_BREAK.split(pending + chunk)
                if len(pending) > self.STDERR_CHUNK_SIZE:
                    lines.append(pending)
                    pending = b""
                for line in lines:
                    self._record_stderr(line, tail)
            self._record_stderr(pending, tail)
        except Exception as e:
            logger.warning(f"Stopped reading ffmpeg stderr: {e}")

    def _record_stderr(self, line: bytes, tail: "deque[str]") -> None:
        text = line.decode("utf-8", errors="replace").strip()
        if text:
            tail.append(text)
            logger.debug(f"ffmpeg: {text}")

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """Terminate, then kill if ffmpeg ignores SIGTERM."""
        if process.returncode is not None:
            return
        try:
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=self.kill_timeout)
                logger.info("Terminated ffmpeg")
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
                logger.warning("Force killed ffmpeg")
        except ProcessLookupError:
            pass
