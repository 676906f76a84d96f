"""
Discord voice transport.

discord.py sends voice as Opus audio, so this transport asks the encoder
for 48 kHz stereo PCM and feeds it to the voice client in 20 ms frames.
"""

import asyncio
import logging
import queue
from typing import Optional

import discord

from voicecast.streaming.resolvers.base import VideoParams
from voicecast.streaming.transport import MediaTransport

logger = logging.getLogger(__name__)

# 20 ms of 48 kHz stereo s16le
FRAME_SIZE = 3840

# About five seconds of audio
MAX_BUFFERED_FRAMES = 250

SILENCE = b"\x00" * FRAME_SIZE


class PipeAudioSource(discord.AudioSource):
    """
    AudioSource fed from the event loop.

    ``read`` runs on discord.py's player thread. An empty frame ends
    playback, so an underrun yields silence until the source is closed.
    """

    def __init__(self, underrun_timeout: float = 0.02):
        self._frames: "queue.Queue[bytes]" = queue.Queue(maxsize=MAX_BUFFERED_FRAMES)
        self._underrun_timeout = underrun_timeout
        self._closed = False

    @property
    def full(self) -> bool:
        return self._frames.full()

    def feed(self, frame: bytes) -> None:
        if not self._closed:
            self._frames.put_nowait(frame)

    def close(self) -> None:
        self._closed = True
        try:
            self._frames.put_nowait(b"")
        except queue.Full:
            pass

    def read(self) -> bytes:
        if self._closed and self._frames.empty():
            return b""
        try:
            return self._frames.get(timeout=self._underrun_timeout)
        except queue.Empty:
            return b"" if self._closed else SILENCE

    def is_opus(self) -> bool:
        return False

    def cleanup(self) -> None:
        self._closed = True


class DiscordVoiceTransport(MediaTransport):
    """Voice channel connection through discord.py."""

    def __init__(self, client: discord.Client):
        self.client = client
        self._voice: Optional[discord.VoiceClient] = None
        self._source: Optional[PipeAudioSource] = None

    @property
    def connected(self) -> bool:
        return self._voice is not None and self._voice.is_connected()

    async def join(self, guild_id: str, channel_id: str, params: VideoParams) -> None:
        guild = self.client.get_guild(int(guild_id))
        if guild is None:
            raise RuntimeError(f"Guild {guild_id} not available")

        channel = guild.get_channel(int(channel_id))
        if not isinstance(channel, (discord.VoiceChannel, discord.StageChannel)):
            raise RuntimeError(f"Channel {channel_id} is not a voice channel")

        if self.connected:
            await self._voice.move_to(channel)
        else:
            self._voice = await channel.connect(self_deaf=True)
        logger.info(f"Joined voice channel {channel.name} ({channel_id})")

    async def leave(self) -> None:
        voice, self._voice = self._voice, None
        if voice is not None:
            await voice.disconnect(force=True)
            logger.info("Left voice channel")

    def output_args(self, params: VideoParams) -> list[str]:
        return [
            "-map", "0:a:0",
            "-vn",
            "-f", "s16le",
            "-ar", "48000",
            "-ac", "2",
            "pipe:1",
        ]

    async def stream(self, reader: asyncio.StreamReader) -> None:
        if self._voice is None:
            raise RuntimeError("Not connected to voice")

        loop = asyncio.get_running_loop()
        finished: asyncio.Future = loop.create_future()

        def after(error: Optional[Exception]) -> None:
            def _resolve() -> None:
                if finished.done():
                    return
                if error is not None:
                    finished.set_exception(error)
                else:
                    finished.set_result(None)

            loop.call_soon_threadsafe(_resolve)

        source = PipeAudioSource()
        self._source = source
        self._voice.play(source, after=after)

        try:
            while not finished.done():
                try:
                    frame = await reader.readexactly(FRAME_SIZE)
                except asyncio.IncompleteReadError as e:
                    if e.partial:
                        await self._feed(source, e.partial.ljust(FRAME_SIZE, b"\x00"), finished)
                    break
                await self._feed(source, frame, finished)
        finally:
            source.close()

        await finished

    @staticmethod
    async def _feed(source: PipeAudioSource, frame: bytes, finished: asyncio.Future) -> None:
        # Backpressure: the player thread drains one frame every 20 ms
        while source.full and not finished.done():
            await asyncio.sleep(0.02)
        if not finished.done():
            source.feed(frame)

    def stop_stream(self) -> None:
        if self._source is not None:
            self._source.close()
            self._source = None
        if self._voice is not None and self._voice.is_playing():
            self._voice.stop()
