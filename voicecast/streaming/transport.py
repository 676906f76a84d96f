"""
Media transport boundary.

The transport owns the voice connection and consumes the encoder's
output. The session controller acquires it before playback and releases
it on every exit path.
"""

import asyncio
from abc import ABC, abstractmethod

from voicecast.streaming.resolvers.base import VideoParams

_VIDEO_ENCODERS = {
    "H264": "libx264",
    "H265": "libx265",
    "VP8": "libvpx",
}


def video_encoder_args(params: VideoParams) -> list[str]:
    """Encoder arguments for a video+audio output at the given parameters."""
    codec = params.video_codec.upper()
    encoder = _VIDEO_ENCODERS.get(codec, "libx264")

    w, h = params.width, params.height
    args = [
        "-map", "0:v:0",
        "-map", "0:a:0?",
        "-vf",
        f"scale={w}:{h}:force_original_aspect_ratio=decrease,"
        f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2,format=yuv420p",
        "-r", str(params.fps),
        "-c:v", encoder,
        "-b:v", f"{params.bitrate_kbps}k",
        "-maxrate", f"{params.max_bitrate_kbps}k",
        "-bufsize", f"{params.max_bitrate_kbps}k",
    ]

    if encoder in ("libx264", "libx265"):
        args.extend(["-preset", params.h26x_preset, "-tune", "zerolatency"])
        # One keyframe per second keeps late joiners close to live
        args.extend(["-g", str(params.fps), "-bf", "0"])
    else:
        args.extend(["-deadline", "realtime", "-cpu-used", "8"])

    args.extend(["-c:a", "libopus", "-b:a", "128k", "-ar", "48000", "-ac", "2"])
    return args


class MediaTransport(ABC):
    """
    Voice connection plus media sink.

    Subclasses decide which container they read by overriding
    ``output_args``; the default is video+audio in NUT on stdout.
    """

    @abstractmethod
    async def join(self, guild_id: str, channel_id: str, params: VideoParams) -> None:
        """Connect to the voice channel. Raises on failure."""

    @abstractmethod
    async def leave(self) -> None:
        """Disconnect from voice. Safe to call when not connected."""

    @abstractmethod
    async def stream(self, reader: asyncio.StreamReader) -> None:
        """Send encoder output until EOF or until ``stop_stream`` is called."""

    @abstractmethod
    def stop_stream(self) -> None:
        """Stop sending immediately. Safe to call when idle."""

    def output_args(self, params: VideoParams) -> list[str]:
        return video_encoder_args(params) + ["-f", "nut", "pipe:1"]
