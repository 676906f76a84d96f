"""
FFprobe media analysis.

Extracts the stream parameters needed to match an encode to its source.
"""

import asyncio
import json
import logging
import shutil
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class VideoStream:
    """Video stream information."""

    index: int
    codec_name: str
    width: int = 0
    height: int = 0
    avg_frame_rate: Optional[str] = None
    r_frame_rate: Optional[str] = None
    bit_rate: Optional[int] = None
    max_bit_rate: Optional[int] = None

    @property
    def frame_rate(self) -> Optional[float]:
        """Calculate frame rate from fraction string."""
        for rate in (self.avg_frame_rate, self.r_frame_rate):
            if not rate:
                continue
            try:
                num, den = rate.split("/")
                if float(den) > 0 and float(num) > 0:
                    return float(num) / float(den)
            except (ValueError, ZeroDivisionError):
                continue
        return None


@dataclass
class MediaInfo:
    """Probed media information."""

    source: str
    format_name: str
    duration_seconds: Optional[float]
    bit_rate: Optional[int]
    video_streams: List[VideoStream] = field(default_factory=list)

    @property
    def primary_video(self) -> Optional[VideoStream]:
        return self.video_streams[0] if self.video_streams else None


class ProbeError(RuntimeError):
    """FFprobe could not analyze a source."""


def _optional_int(value: Any) -> Optional[int]:
    # ffprobe reports unknown numeric fields as "N/A"
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _optional_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class FFprobeAnalyzer:
    """Analyzes local files and URLs using FFprobe."""

    def __init__(self, ffprobe_path: Optional[str] = None, timeout: float = 30.0):
        self.ffprobe_path = ffprobe_path or shutil.which("ffprobe") or "ffprobe"
        self.timeout = timeout

    async def analyze(self, source: str) -> MediaInfo:
        """
        Analyze a media source.

        Args:
            source: Local path or URL.

        Returns:
            MediaInfo for the source.

        Raises:
            ProbeError: If ffprobe fails, times out, or prints unreadable output.
        """
        cmd = [
            self.ffprobe_path,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            source,
        ]

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ProbeError(f"Cannot run ffprobe: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise ProbeError(f"FFprobe timeout for {source}")

        if process.returncode != 0:
            error = stderr.decode("utf-8", errors="replace") if stderr else "Unknown error"
            raise ProbeError(f"FFprobe failed: {error}")

        try:
            data = json.loads(stdout.decode("utf-8", errors="replace"))
        except json.JSONDecodeError as e:
            raise ProbeError(f"FFprobe output parse error: {e}") from e

        return self.parse_result(source, data)

    def parse_result(self, source: str, data: Dict[str, Any]) -> MediaInfo:
        """Parse FFprobe JSON output."""
        fmt = data.get("format", {})

        media_info = MediaInfo(
            source=source,
            format_name=fmt.get("format_name", "unknown"),
            duration_seconds=_optional_float(fmt.get("duration")),
            bit_rate=_optional_int(fmt.get("bit_rate")),
        )

        for stream in data.get("streams", []):
            if stream.get("codec_type") == "video":
                media_info.video_streams.append(
                    VideoStream(
                        index=stream.get("index", 0),
                        codec_name=stream.get("codec_name", "unknown"),
                        width=stream.get("width", 0),
                        height=stream.get("height", 0),
                        avg_frame_rate=stream.get("avg_frame_rate"),
                        r_frame_rate=stream.get("r_frame_rate"),
                        bit_rate=_optional_int(stream.get("bit_rate")),
                        max_bit_rate=_optional_int(stream.get("max_bit_rate")),
                    )
                )

        return media_info
