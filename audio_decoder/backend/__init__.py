"""
Backend selection for audio_decoder.

get_backend() returns the process-wide backend, initializing it exactly once.
Initialization happens-before the first operation that uses it; there is no
teardown short of process exit.
"""

import logging
import threading
from typing import Optional

from audio_decoder.backend.base import (
    AudioBackend,
    DecodedChunk,
    DecodeSession,
    DiscoveryInfo,
    EncodeSession,
    MediaType,
    StreamFormat,
    StreamInfo,
)
from audio_decoder.config import DecoderConfig, get_global_config

logger = logging.getLogger(__name__)

_BACKEND: Optional[AudioBackend] = None
_BACKEND_LOCK = threading.Lock()


def get_backend(config: Optional[DecoderConfig] = None) -> AudioBackend:
    """
    Get or create the process-wide backend.

    Args:
        config: Configuration used on first creation (default: global config)

    Raises:
        BackendInitError: If the backend cannot be initialized
    """
    global _BACKEND
    with _BACKEND_LOCK:
        if _BACKEND is None:
            from audio_decoder.backend.ffmpeg import FFmpegBackend

            backend = FFmpegBackend(config or get_global_config())
            backend.initialize()
            _BACKEND = backend
            logger.info(f"[BACKEND] Initialized {backend.name} backend")
        return _BACKEND


def set_backend(backend: Optional[AudioBackend]) -> None:
    """
    Install a backend as the process-wide instance (None resets).

    The backend is initialized before it is installed.
    """
    global _BACKEND
    with _BACKEND_LOCK:
        if backend is not None:
            backend.initialize()
        _BACKEND = backend


__all__ = [
    "AudioBackend",
    "DecodedChunk",
    "DecodeSession",
    "DiscoveryInfo",
    "EncodeSession",
    "MediaType",
    "StreamFormat",
    "StreamInfo",
    "get_backend",
    "set_backend",
]
