"""
PCM decode engine.

Drives a backend decode session and concatenates its chunks into a single
PcmBuffer, honoring an optional [start_ms, end_ms) range. The range is best
effort: the seek may snap to a keyframe and the end boundary is applied per
chunk (the first chunk whose timestamp reaches end_ms is dropped and decoding
stops).
"""

import logging
import os
from typing import List, Optional
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

from audio_decoder.backend import AudioBackend, StreamFormat, get_backend
from audio_decoder.errors import DecodePipelineError, InvalidSourceError
from audio_decoder.models import DecodeRequest, PcmBuffer

logger = logging.getLogger(__name__)

NS_PER_MS = 1_000_000


def resolve_source(source: str) -> str:
    """
    Resolve a path or URI to a location the backend can open.

    file:// URIs become local paths. Other URI schemes are handed to the
    backend unchanged. Local paths must exist.

    Raises:
        InvalidSourceError: If the source is empty, malformed or missing
    """
    if not source:
        raise InvalidSourceError("Source path is empty")

    if source.startswith("file://"):
        parsed = urlparse(source)
        if parsed.netloc not in ("", "localhost"):
            raise InvalidSourceError(f"Cannot convert URI to path: {source}")
        path = url2pathname(unquote(parsed.path))
    elif "://" in source:
        return source
    else:
        path = source

    if not os.path.isfile(path):
        raise InvalidSourceError(f"Source file does not exist: {source}")
    return path


def decode(request: DecodeRequest, backend: Optional[AudioBackend] = None) -> PcmBuffer:
    """
    Decode request.source to PCM.

    Args:
        request: Source, optional range and optional output format
        backend: Backend to use (default: process-wide backend)

    Returns:
        PcmBuffer with the concatenated PCM of every accepted chunk. Empty
        (not an error) if the range produced no samples.

    Raises:
        InvalidSourceError: If the source cannot be resolved
        BackendInitError: If the backend cannot start
        DecodePipelineError: If the pipeline fails
    """
    location = resolve_source(request.source)
    backend = backend or get_backend()

    end_ns = request.end_ms * NS_PER_MS if request.end_ms is not None else None
    stream_format: Optional[StreamFormat] = None
    parts: List[bytes] = []
    dropped_at: Optional[int] = None

    with backend.open_decoder(
        location,
        start_ms=request.start_ms,
        sample_rate=request.target_sample_rate,
        channels=request.target_channels,
        bit_depth=request.output_bit_depth,
    ) as session:
        for chunk in session.chunks():
            if stream_format is None:
                stream_format = chunk.stream_format

            if end_ns is not None and chunk.pts_ns is not None and chunk.pts_ns >= end_ns:
                dropped_at = chunk.pts_ns
                break

            if chunk.data:
                parts.append(chunk.data)

    data = b"".join(parts)

    if stream_format is None:
        logger.info(f"[DECODE] No buffers decoded from {request.source}")
        return PcmBuffer.empty()

    if data and stream_format.block_align <= 0:
        raise DecodePipelineError(
            f"Decoder produced {len(data)} bytes without a usable stream format "
            f"({stream_format})"
        )

    if data and stream_format.sample_rate <= 0:
        raise DecodePipelineError(
            f"Decoder produced {len(data)} bytes with sample rate {stream_format.sample_rate}"
        )

    try:
        pcm = PcmBuffer(
            data=data,
            sample_rate=stream_format.sample_rate,
            channels=stream_format.channels,
            bits_per_sample=stream_format.bits_per_sample,
        )
    except ValueError as e:
        raise DecodePipelineError(f"Decoder produced misaligned PCM: {e}")

    if dropped_at is not None:
        logger.debug(f"[DECODE] Stopped at pts={dropped_at}ns (endMs={request.end_ms})")
    logger.info(
        f"[DECODE] {request.source}: {len(data)} bytes, "
        f"{pcm.sample_rate}Hz {pcm.channels}ch {pcm.bits_per_sample}bit "
        f"(~{pcm.duration_ms}ms)"
    )
    return pcm
