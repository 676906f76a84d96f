"""
voicecast - Discord voice channel streamer

Plays local videos and YouTube links into a voice channel:
- Local video catalog with name or number lookup
- YouTube links and title search through yt-dlp
- One transmission at a time, controlled from allow-listed text channels
"""

__version__ = "1.0.0"
__license__ = "MIT"

from voicecast.config import get_config, load_config

__all__ = [
    "__version__",
    "get_config",
    "load_config",
]
