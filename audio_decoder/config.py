"""
Configuration management for audio_decoder.

Reads configuration from an optional .env file and environment variables with
sensible defaults.
"""

import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


# Default .env file location
DEFAULT_ENV_FILE = Path("/etc/audio_decoder/decoder.env")

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

logger = logging.getLogger(__name__)


def _load_env_file() -> None:
    """Load environment variables from .env file if it exists."""
    env_file = os.getenv("AUDIO_DECODER_ENV_FILE", str(DEFAULT_ENV_FILE))
    env_path = Path(env_file)

    if env_path.exists():
        load_dotenv(env_path, override=False)  # Don't override existing env vars


def _int_env(name: str, default: str) -> int:
    value = os.getenv(name, default)
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Invalid {name}: {value} (must be an integer)")


def _float_env(name: str, default: str) -> float:
    value = os.getenv(name, default)
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Invalid {name}: {value} (must be a number)")


@dataclass
class DecoderConfig:
    """audio_decoder configuration loaded from .env file and environment variables."""

    # Backend binaries
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # Metadata discovery bound
    probe_timeout_sec: float = 5.0

    # AAC encode target
    aac_bitrate: str = "128k"

    # Decode chunking (frames per chunk read from the backend)
    chunk_frames: int = 1024

    # Scratch files for byte-buffer variants (None = system temp dir)
    temp_dir: Optional[str] = None

    # Worker pool for the method service
    max_workers: int = 4

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @property
    def aac_bitrate_bps(self) -> int:
        return int(self.aac_bitrate[:-1]) * 1000

    @property
    def scratch_dir(self) -> str:
        return self.temp_dir or tempfile.gettempdir()

    @classmethod
    def load_config(cls) -> "DecoderConfig":
        """
        Load configuration from environment variables.

        Returns:
            DecoderConfig instance with loaded values

        Raises:
            ValueError: If configuration is invalid
        """
        # Load .env file first (if it exists)
        _load_env_file()

        temp_dir = os.getenv("AUDIO_DECODER_TEMP_DIR") or None
        log_file = os.getenv("AUDIO_DECODER_LOG_FILE") or None

        config = cls(
            ffmpeg_path=os.getenv("AUDIO_DECODER_FFMPEG", "ffmpeg"),
            ffprobe_path=os.getenv("AUDIO_DECODER_FFPROBE", "ffprobe"),
            probe_timeout_sec=_float_env("AUDIO_DECODER_PROBE_TIMEOUT_SEC", "5"),
            aac_bitrate=os.getenv("AUDIO_DECODER_AAC_BITRATE", "128k"),
            chunk_frames=_int_env("AUDIO_DECODER_CHUNK_FRAMES", "1024"),
            temp_dir=temp_dir,
            max_workers=_int_env("AUDIO_DECODER_MAX_WORKERS", "4"),
            log_level=os.getenv("AUDIO_DECODER_LOG_LEVEL", "INFO"),
            log_file=log_file,
        )

        config.validate()

        return config

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: If configuration is invalid
        """
        if not self.ffmpeg_path:
            raise ValueError("ffmpeg path cannot be empty")
        if not self.ffprobe_path:
            raise ValueError("ffprobe path cannot be empty")

        if self.probe_timeout_sec <= 0:
            raise ValueError(f"Invalid probe timeout: {self.probe_timeout_sec} (must be > 0)")

        if not self.aac_bitrate.endswith("k"):
            raise ValueError(
                f"Invalid bitrate format: {self.aac_bitrate} (must end with 'k', e.g., '128k')"
            )
        try:
            bitrate_value = int(self.aac_bitrate[:-1])
        except ValueError:
            raise ValueError(f"Invalid bitrate: {self.aac_bitrate}")
        if bitrate_value <= 0:
            raise ValueError(f"Invalid bitrate value: {bitrate_value}")

        if self.chunk_frames <= 0:
            raise ValueError(f"Invalid chunk frames: {self.chunk_frames} (must be > 0)")

        if self.max_workers <= 0:
            raise ValueError(f"Invalid max workers: {self.max_workers} (must be > 0)")

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level: {self.log_level} "
                f"(must be one of: {', '.join(VALID_LOG_LEVELS)})"
            )

        if self.temp_dir is not None and not Path(self.temp_dir).is_dir():
            raise FileNotFoundError(
                f"AUDIO_DECODER_TEMP_DIR does not exist: {self.temp_dir}"
            )


def load_config() -> DecoderConfig:
    """
    Load and validate configuration from environment variables.

    Raises:
        ValueError: If configuration is invalid
    """
    try:
        return DecoderConfig.load_config()
    except (ValueError, FileNotFoundError) as e:
        logger.error(f"Configuration error: {e}")
        raise


_CONFIG: Optional[DecoderConfig] = None
_CONFIG_LOCK = threading.Lock()


def get_global_config() -> DecoderConfig:
    """
    Get or load the process-wide configuration instance.

    Returns:
        DecoderConfig instance
    """
    global _CONFIG
    with _CONFIG_LOCK:
        if _CONFIG is None:
            _CONFIG = load_config()
        return _CONFIG
