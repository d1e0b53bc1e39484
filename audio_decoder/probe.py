"""
Metadata prober.

Reads duration, sample rate, channel count, bit rate and a normalized format
tag without a full decode. Probing is independent of decoding: a source with
no audio stream yields a default descriptor rather than an error.
"""

import logging
from typing import Optional

from audio_decoder.backend import AudioBackend, MediaType, get_backend
from audio_decoder.config import DecoderConfig, get_global_config
from audio_decoder.models import AudioDescriptor, AudioFormat
from audio_decoder.pcm.decode import resolve_source

logger = logging.getLogger(__name__)

NS_PER_MS = 1_000_000

# Prefix-matched media type families without sub-field dispatch
FAMILY_FORMATS = (
    ("audio/x-flac", AudioFormat.FLAC),
    ("audio/x-vorbis", AudioFormat.OGG),
    ("audio/x-opus", AudioFormat.OPUS),
    ("audio/x-wav", AudioFormat.WAV),
    ("audio/x-raw", AudioFormat.PCM),
    ("audio/x-aiff", AudioFormat.AIFF),
    ("audio/x-alac", AudioFormat.ALAC),
    ("audio/AMR", AudioFormat.AMR),
    ("audio/x-wma", AudioFormat.WMA),
)


def classify(media_type: Optional[MediaType]) -> AudioFormat:
    """
    Map a negotiated media type onto the AudioFormat enum.

    MPEG-family audio is split on its sub-fields: version 1 layer 3 is MP3,
    versions 2 and 4 are AAC, anything else is unknown.
    """
    if media_type is None or not media_type.family:
        return AudioFormat.UNKNOWN

    family = media_type.family
    if family.startswith("audio/mpeg"):
        if media_type.mpeg_version == 1 and media_type.layer == 3:
            return AudioFormat.MP3
        if media_type.mpeg_version in (2, 4):
            return AudioFormat.AAC
        return AudioFormat.UNKNOWN

    for prefix, audio_format in FAMILY_FORMATS:
        if family.startswith(prefix):
            return audio_format
    return AudioFormat.UNKNOWN


def probe(
    source: str,
    backend: Optional[AudioBackend] = None,
    timeout_sec: Optional[float] = None,
    config: Optional[DecoderConfig] = None,
) -> AudioDescriptor:
    """
    Probe source for metadata.

    Args:
        source: Local path or URI
        backend: Backend to use (default: process-wide backend)
        timeout_sec: Discovery bound (default: probe timeout from config)
        config: Configuration (default: global config)

    Raises:
        InvalidSourceError: If the source cannot be resolved
        BackendInitError: If the discovery session cannot be created
        ProbeTimeoutError: If discovery exceeds the time bound
        DiscoveryError: If the source is unreadable, corrupt or unsupported
    """
    location = resolve_source(source)
    backend = backend or get_backend(config)
    if timeout_sec is None:
        timeout_sec = (config or get_global_config()).probe_timeout_sec

    info = backend.discover(location, timeout_sec)

    duration_ms = info.duration_ns // NS_PER_MS if info.duration_ns else 0
    stream = info.audio_stream
    if stream is None:
        logger.info(f"[PROBE] {source}: no audio stream (container={info.container or 'unknown'})")
        return AudioDescriptor()

    descriptor = AudioDescriptor(
        duration_ms=duration_ms,
        sample_rate=stream.sample_rate,
        channels=stream.channels,
        bit_rate=stream.bit_rate,
        format=classify(stream.media_type),
    )
    logger.info(
        f"[PROBE] {source}: {descriptor.format.value} {descriptor.sample_rate}Hz "
        f"{descriptor.channels}ch {descriptor.bit_rate}bps {descriptor.duration_ms}ms"
    )
    return descriptor
