"""
Local media: the video catalog and ffprobe-based inspection.
"""

from voicecast.media.catalog import VideoCatalog, VideoEntry, imdb_url_for, normalize_name
from voicecast.media.ffprobe import FFprobeAnalyzer, MediaInfo, ProbeError, VideoStream

__all__ = [
    "VideoCatalog",
    "VideoEntry",
    "imdb_url_for",
    "normalize_name",
    "FFprobeAnalyzer",
    "MediaInfo",
    "ProbeError",
    "VideoStream",
]
