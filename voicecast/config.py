"""
Configuration management for voicecast.

Handles loading, validation, and access to application configuration.
"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

# Global configuration instance
_config: Optional["VoicecastConfig"] = None


class DiscordConfig(BaseModel):
    """Chat connectivity and control-channel allow-list."""
    token: str = ""
    prefix: str = "$"
    guild_id: str = ""
    command_channel_ids: list[str] = Field(default_factory=list)
    video_channel_id: str = ""

    @field_validator("guild_id", "video_channel_id", mode="before")
    @classmethod
    def _snowflake_to_str(cls, value: Any) -> Any:
        # YAML reads bare snowflake ids as integers
        return str(value) if isinstance(value, int) else value

    @field_validator("command_channel_ids", mode="before")
    @classmethod
    def _channel_ids_to_str(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, (str, int)):
            value = [value]
        return [str(v) for v in value]

    @property
    def primary_command_channel_id(self) -> Optional[str]:
        """Channel that receives out-of-band notices (finished, crash)."""
        return self.command_channel_ids[0] if self.command_channel_ids else None


class LibraryConfig(BaseModel):
    """Local video catalog configuration."""
    videos_dir: str = "./videos"
    extensions: list[str] = Field(
        default_factory=lambda: [".mp4", ".mkv", ".avi", ".mov", ".wmv"]
    )


class StreamConfig(BaseModel):
    """Default streaming parameters."""
    width: int = 1280
    height: int = 720
    fps: int = 30
    bitrate_kbps: int = 1000
    max_bitrate_kbps: int = 2500
    hardware_accelerated_decoding: bool = False
    video_codec: str = "H264"  # H264, H265, VP8
    h26x_preset: str = "ultrafast"
    respect_video_params: bool = False  # Probe local sources and match their params


class FFmpegConfig(BaseModel):
    """FFmpeg configuration."""
    path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    log_level: str = "warning"  # FFmpeg log level: quiet, panic, fatal, error, warning, info
    probe_timeout: float = 30.0
    kill_timeout: float = 5.0  # Seconds to wait after SIGTERM before SIGKILL


class YouTubeConfig(BaseModel):
    """YouTube source configuration."""
    cookies_file: str = ""
    preferred_quality: str = "720"
    prefer_h264: bool = True


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    file: str = "logs/voicecast.log"
    max_size: str = "10MB"
    backup_count: int = 5
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class VoicecastConfig(BaseModel):
    """Main voicecast configuration."""
    discord: DiscordConfig = Field(default_factory=DiscordConfig)
    library: LibraryConfig = Field(default_factory=LibraryConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    ffmpeg: FFmpegConfig = Field(default_factory=FFmpegConfig)
    youtube: YouTubeConfig = Field(default_factory=YouTubeConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Optional[str] = None) -> VoicecastConfig:
    """
    Load configuration from file.

    Args:
        config_path: Path to config file. Defaults to config.yaml in project root.

    Returns:
        Loaded and validated configuration.
    """
    global _config

    if config_path is None:
        # Look for config.yaml in current directory or project root
        possible_paths = [
            Path("config.yaml"),
            Path(__file__).parent.parent / "config.yaml",
        ]
        for path in possible_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data: dict[str, Any] = {}

    if config_path and Path(config_path).exists():
        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}

    # Apply environment variable overrides
    env_overrides = _get_env_overrides()
    _deep_merge(config_data, env_overrides)

    _config = VoicecastConfig(**config_data)
    return _config


def get_config() -> VoicecastConfig:
    """
    Get the current configuration.

    Returns:
        Current configuration (loads default if not yet loaded).
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> VoicecastConfig:
    """
    Reload configuration from disk.

    Returns:
        Freshly loaded configuration.
    """
    global _config
    _config = None
    return load_config()


def _get_env_overrides() -> dict[str, Any]:
    """Get configuration overrides from environment variables."""
    overrides: dict[str, Any] = {}

    # Map of environment variables to config paths
    env_map = {
        "VOICECAST_TOKEN": ("discord", "token"),
        "VOICECAST_PREFIX": ("discord", "prefix"),
        "VOICECAST_GUILD_ID": ("discord", "guild_id"),
        "VOICECAST_VIDEO_CHANNEL_ID": ("discord", "video_channel_id"),
        "VOICECAST_VIDEOS_DIR": ("library", "videos_dir"),
        "VOICECAST_FFMPEG_PATH": ("ffmpeg", "path"),
        "VOICECAST_RESPECT_VIDEO_PARAMS": ("stream", "respect_video_params"),
    }

    # Snowflake ids and tokens must stay strings
    raw_strings = {
        "VOICECAST_TOKEN",
        "VOICECAST_PREFIX",
        "VOICECAST_GUILD_ID",
        "VOICECAST_VIDEO_CHANNEL_ID",
        "VOICECAST_VIDEOS_DIR",
        "VOICECAST_FFMPEG_PATH",
    }

    for env_var, path in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            parsed = value if env_var in raw_strings else _parse_env_value(value)
            _set_nested(overrides, path, parsed)

    channel_ids = os.environ.get("VOICECAST_COMMAND_CHANNEL_IDS")
    if channel_ids is not None:
        _set_nested(
            overrides,
            ("discord", "command_channel_ids"),
            [c.strip() for c in channel_ids.split(",") if c.strip()],
        )

    return overrides


def _parse_env_value(value: str) -> Any:
    """Parse environment variable value to appropriate type."""
    # Boolean
    if value.lower() in ("true", "1", "yes"):
        return True
    if value.lower() in ("false", "0", "no"):
        return False

    # Integer
    try:
        return int(value)
    except ValueError:
        pass

    # Float
    try:
        return float(value)
    except ValueError:
        pass

    return value


def _set_nested(d: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    """Set a nested dictionary value from a path tuple."""
    for key in path[:-1]:
        d = d.setdefault(key, {})
    d[path[-1]] = value


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> None:
    """Deep merge override into base dictionary."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
