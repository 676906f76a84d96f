"""
voicecast Test Configuration

Shared fixtures and configuration for all tests.
"""

import os
import tempfile
from pathlib import Path
from typing import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add project root to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from voicecast.media.catalog import VideoCatalog
from voicecast.streaming.resolvers.base import VideoParams


# ============ Temporary File Fixtures ============


@pytest.fixture(scope="function")
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(scope="function")
def video_dir(temp_dir: Path) -> Path:
    """
    A small video library.

    videos/
        Movie A.mp4
        Movie B [imdbid-tt0133093].mkv
        notes.txt
        .hidden.mp4
        Series/Episode One.AVI
        .trash/Deleted.mp4
    """
    root = temp_dir / "videos"
    (root / "Series").mkdir(parents=True)
    (root / ".trash").mkdir()
    for name in (
        "Movie A.mp4",
        "Movie B [imdbid-tt0133093].mkv",
        "notes.txt",
        ".hidden.mp4",
        "Series/Episode One.AVI",
        ".trash/Deleted.mp4",
    ):
        (root / name).write_bytes(b"\x00" * 16)
    return root


@pytest.fixture
def catalog(video_dir: Path) -> VideoCatalog:
    """Catalog over ``video_dir``, already scanned."""
    catalog = VideoCatalog(video_dir)
    catalog.refresh()
    return catalog


@pytest.fixture(scope="function")
def temp_config_file(temp_dir: Path) -> Path:
    """Create a temporary config file."""
    config_file = temp_dir / "config.yaml"
    config_content = """
discord:
  token: "file-token"
  prefix: "!"
  guild_id: 111111111111111111
  command_channel_ids: [222222222222222222, "333333333333333333"]
  video_channel_id: 444444444444444444

library:
  videos_dir: "/srv/videos"

stream:
  width: 1920
  height: 1080
  fps: 60

logging:
  level: "DEBUG"
"""
    config_file.write_text(config_content)
    return config_file


# ============ Mock Fixtures ============


@pytest.fixture
def default_params() -> VideoParams:
    return VideoParams()


@pytest.fixture
def mock_message() -> MagicMock:
    """A Discord message in the allow-listed command channel."""
    message = MagicMock()
    message.author.bot = False
    message.author.id = 42
    message.channel.id = 1000
    message.channel.send = AsyncMock()
    message.add_reaction = AsyncMock()
    message.reply = AsyncMock()
    message.content = "$help"
    return message


# ============ Environment Fixtures ============


@pytest.fixture(autouse=True)
def clean_environment():
    """Clean environment variables for each test."""
    # Save current environment
    original_env = os.environ.copy()

    # Remove voicecast-specific vars
    for key in list(os.environ.keys()):
        if key.startswith("VOICECAST_"):
            del os.environ[key]

    yield

    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)
