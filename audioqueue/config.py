"""
Configuration management for AudioQueue.

Handles loading, validation, and access to application configuration.
"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field

# Global configuration instance
_config: Optional["AudioQueueConfig"] = None


class ServerConfig(BaseModel):
    """Server configuration."""
    host: str = "0.0.0.0"
    port: int = 3000
    debug: bool = False
    log_level: str = "INFO"
    base_url: str = "http://localhost:3000"  # Public URL used in proxied stream links


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    file: str = "logs/audioqueue.log"
    max_size: str = "10MB"
    backup_count: int = 5
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class FFmpegConfig(BaseModel):
    """FFmpeg configuration for the remux proxy."""
    path: str = "ffmpeg"
    log_level: str = "warning"  # FFmpeg log level: quiet, panic, fatal, error, warning, info
    read_size: int = 65536  # 64KB stdout reads
    timeout: int = 30  # Upstream network timeout in seconds


class YtDlpConfig(BaseModel):
    """yt-dlp (generic extractor) configuration."""
    path: str = "yt-dlp"
    timeout: float = 30.0
    format: str = "bestaudio[ext=m4a]/bestaudio[acodec=mp4a]/bestaudio/best"
    cookies: str = ""  # Netscape cookie file contents
    cookies_file: str = ""  # Alternatively, path to a Netscape cookie file

    @property
    def has_cookies(self) -> bool:
        """True when any cookie source is configured."""
        return bool(self.cookies.strip()) or bool(self.cookies_file)


class MirrorsConfig(BaseModel):
    """Public YouTube front-end mirrors raced for audio streams."""
    timeout: float = 10.0
    user_agent: str = "AudioQueue/1.0"
    # https://github.com/TeamPiped/Piped/wiki/Instances
    piped_instances: list[str] = Field(default_factory=lambda: [
        "https://pipedapi.kavin.rocks",
        "https://piped-api.garudalinux.org",
        "https://pipedapi.adminforge.de",
        "https://api.piped.yt",
        "https://pipedapi.in.projectsegfau.lt",
        "https://piped-api.codeberg.page",
        "https://watchapi.whatever.social",
        "https://api.piped.privacydev.net",
    ])
    # https://api.invidious.io/instances.json
    invidious_instances: list[str] = Field(default_factory=lambda: [
        "https://invidious.io.lol",
        "https://invidious.privacyredirect.com",
        "https://invidious.nerdvpn.de",
        "https://inv.nadeko.net",
        "https://invidious.fdn.fr",
        "https://invidious.perennialte.ch",
    ])


class PodcastIndexConfig(BaseModel):
    """Podcast Index search and iTunes lookup configuration."""
    api_key: str = ""
    api_secret: str = ""
    base_url: str = "https://api.podcastindex.org/api/1.0"
    itunes_lookup_url: str = "https://itunes.apple.com/lookup"
    timeout: float = 8.0
    search_max: int = 5
    user_agent: str = "AudioQueue/1.0"

    @property
    def is_configured(self) -> bool:
        """True when both key and secret are present."""
        return bool(self.api_key.strip()) and bool(self.api_secret.strip())


class StreamCacheConfig(BaseModel):
    """Stream URL cache configuration."""
    default_ttl_seconds: int = 4 * 3600
    expiry_margin_seconds: int = 300  # Refresh expiring CDN URLs 5 minutes early


class ResolverConfig(BaseModel):
    """Dispatcher behaviour."""
    youtube_eager_audio: bool = False  # Resolve YouTube audio at dispatch instead of play time
    batch_limit: int = 20
    rss_timeout: float = 10.0


class AudioQueueConfig(BaseModel):
    """Main AudioQueue configuration."""
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    ffmpeg: FFmpegConfig = Field(default_factory=FFmpegConfig)
    ytdlp: YtDlpConfig = Field(default_factory=YtDlpConfig)
    mirrors: MirrorsConfig = Field(default_factory=MirrorsConfig)
    podcast_index: PodcastIndexConfig = Field(default_factory=PodcastIndexConfig)
    stream_cache: StreamCacheConfig = Field(default_factory=StreamCacheConfig)
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)


def load_config(config_path: Optional[str] = None) -> AudioQueueConfig:
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

    _config = AudioQueueConfig(**config_data)
    return _config


def get_config() -> AudioQueueConfig:
    """
    Get the current configuration.

    Returns:
        Current configuration (loads default if not yet loaded).
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> AudioQueueConfig:
    """
    Reload configuration from disk.

    Returns:
        Freshly loaded configuration.
    """
    global _config
    _config = None
    return load_config()


# Map of environment variables to config paths
_ENV_MAP: dict[str, tuple[str, ...]] = {
    "AUDIOQUEUE_HOST": ("server", "host"),
    "AUDIOQUEUE_PORT": ("server", "port"),
    "AUDIOQUEUE_DEBUG": ("server", "debug"),
    "AUDIOQUEUE_BASE_URL": ("server", "base_url"),
    "AUDIOQUEUE_LOG_LEVEL": ("logging", "level"),
    "AUDIOQUEUE_FFMPEG_PATH": ("ffmpeg", "path"),
    "AUDIOQUEUE_YTDLP_PATH": ("ytdlp", "path"),
    "PODCAST_INDEX_API_KEY": ("podcast_index", "api_key"),
    "PODCAST_INDEX_API_SECRET": ("podcast_index", "api_secret"),
    "YOUTUBE_COOKIES": ("ytdlp", "cookies"),
}

# Opaque values taken verbatim, never coerced
_RAW_ENV_VARS = {
    "AUDIOQUEUE_BASE_URL",
    "PODCAST_INDEX_API_KEY",
    "PODCAST_INDEX_API_SECRET",
    "YOUTUBE_COOKIES",
}


def _get_env_overrides() -> dict[str, Any]:
    """Get configuration overrides from environment variables."""
    overrides: dict[str, Any] = {}

    for env_var, path in _ENV_MAP.items():
        value = os.environ.get(env_var)
        if value is None:
            continue
        if env_var in _RAW_ENV_VARS:
            _set_nested(overrides, path, value.strip())
        else:
            _set_nested(overrides, path, _parse_env_value(value))

    return overrides


def _parse_env_value(value: str) -> Any:
    """Parse environment variable value to appropriate type."""
    # Boolean
    if value.lower() in ("true", "yes"):
        return True
    if value.lower() in ("false", "no"):
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
