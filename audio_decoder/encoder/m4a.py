"""
AAC/M4A encoder.

Streams a PcmBuffer through a backend encode session in one-second chunks and
finalizes the MP4 container. Output is lossy and varies across encoder
versions; only its structure (container, track, duration) is stable.
"""

import logging
from typing import Iterator, Optional, Tuple

from audio_decoder.artifacts import read_and_delete, remove_quietly, scratch_output
from audio_decoder.backend import AudioBackend, get_backend
from audio_decoder.config import DecoderConfig, get_global_config
from audio_decoder.errors import AudioDecoderError, EmptySourceError, EncodeError
from audio_decoder.models import PcmBuffer

logger = logging.getLogger(__name__)

NS_PER_SEC = 1_000_000_000
CHUNK_SECONDS = 1


def iter_chunks(pcm: PcmBuffer, seconds: int = CHUNK_SECONDS) -> Iterator[Tuple[bytes, int]]:
    """
    Split pcm into block-aligned chunks of about `seconds` of audio.

    Yields:
        (chunk bytes, presentation timestamp in ns) with strictly increasing
        timestamps derived from the byte offset and the byte rate
    """
    chunk_size = max(pcm.block_align, pcm.byte_rate * seconds)
    for offset in range(0, len(pcm.data), chunk_size):
        yield pcm.data[offset:offset + chunk_size], offset * NS_PER_SEC // pcm.byte_rate


def encode_m4a(
    pcm: PcmBuffer,
    output_path: str,
    backend: Optional[AudioBackend] = None,
    bitrate_bps: Optional[int] = None,
    config: Optional[DecoderConfig] = None,
) -> str:
    """
    Encode pcm to an AAC track in an MP4 container at output_path.

    The destination is removed before encoding and again on any failure.

    Raises:
        EmptySourceError: If pcm carries no data
        BackendInitError: If the backend cannot start
        EncodeError: If the encode pipeline fails
    """
    if pcm.is_empty:
        raise EmptySourceError("No audio data decoded from input file")

    backend = backend or get_backend(config)
    if bitrate_bps is None:
        bitrate_bps = (config or get_global_config()).aac_bitrate_bps

    remove_quietly(output_path)
    try:
        with backend.open_m4a_encoder(
            output_path,
            sample_rate=pcm.sample_rate,
            channels=pcm.channels,
            bits_per_sample=pcm.bits_per_sample,
            bitrate_bps=bitrate_bps,
        ) as session:
            chunks = 0
            for chunk, pts_ns in iter_chunks(pcm):
                session.write(chunk, pts_ns)
                chunks += 1
            session.finish()
    except AudioDecoderError:
        remove_quietly(output_path)
        raise
    except OSError as e:
        remove_quietly(output_path)
        raise EncodeError(f"M4A encoding failed: {e}")

    logger.info(
        f"[ENCODE] Wrote {output_path} ({chunks} chunks, ~{pcm.duration_ms}ms, "
        f"{bitrate_bps // 1000}kbps)"
    )
    return output_path


def encode_m4a_bytes(
    pcm: PcmBuffer,
    backend: Optional[AudioBackend] = None,
    bitrate_bps: Optional[int] = None,
    config: Optional[DecoderConfig] = None,
) -> bytes:
    """Encode pcm to M4A and return the container bytes."""
    config = config or get_global_config()
    with scratch_output("m4a", config.scratch_dir) as path:
        encode_m4a(pcm, path, backend=backend, bitrate_bps=bitrate_bps, config=config)
        return read_and_delete(path)
