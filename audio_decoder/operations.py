"""
Public operations: convert, probe, trim and summarize.

Path variants read and write files directly. Bytes variants materialize the
input through the temp-artifact bridge and return the result in memory.
Every function accepts an optional backend and config; None selects the
process-wide instance of each.
"""

import logging
import os
from typing import List, Optional

from audio_decoder.artifacts import scratch_input, write_output
from audio_decoder.backend import AudioBackend
from audio_decoder.config import DecoderConfig, get_global_config
from audio_decoder.encoder import encode_m4a, encode_m4a_bytes
from audio_decoder.errors import EmptyRangeError, EmptyResultError, InvalidArgumentsError
from audio_decoder.models import AudioDescriptor, DecodeRequest, PcmBuffer
from audio_decoder.pcm import decode, summarize, write_wav
from audio_decoder.probe import probe

logger = logging.getLogger(__name__)

OUTPUT_WAV = "wav"
OUTPUT_M4A = "m4a"
OUTPUT_KINDS = (OUTPUT_WAV, OUTPUT_M4A)


def normalize_output_kind(output_kind: str) -> str:
    kind = (output_kind or "").strip().lstrip(".").lower()
    if kind not in OUTPUT_KINDS:
        raise InvalidArgumentsError(
            f"Unsupported output format: {output_kind!r} (must be 'wav' or 'm4a')"
        )
    return kind


def output_kind_for_path(path: str) -> str:
    """m4a if path ends in .m4a (any case), wav otherwise."""
    extension = os.path.splitext(path)[1].lower()
    return OUTPUT_M4A if extension == ".m4a" else OUTPUT_WAV


def _decode_nonempty(request: DecodeRequest, backend: Optional[AudioBackend]) -> PcmBuffer:
    pcm = decode(request, backend)
    if pcm.is_empty:
        raise EmptyResultError("No audio data decoded from input file")
    return pcm


def _scratch_dir(config: Optional[DecoderConfig]) -> str:
    return (config or get_global_config()).scratch_dir


def _check_sample_count(number_of_samples: int) -> None:
    if number_of_samples <= 0:
        raise InvalidArgumentsError(
            f"numberOfSamples must be > 0 (got {number_of_samples})"
        )


# ---------------------------------------------------------------------------
# Path variants
# ---------------------------------------------------------------------------

def convert_to_wav(
    input_path: str,
    output_path: str,
    sample_rate: Optional[int] = None,
    channels: Optional[int] = None,
    bit_depth: Optional[int] = None,
    backend: Optional[AudioBackend] = None,
    config: Optional[DecoderConfig] = None,
) -> str:
    """Decode input_path and write a canonical PCM WAV file to output_path."""
    request = DecodeRequest(
        source=input_path,
        target_sample_rate=sample_rate,
        target_channels=channels,
        target_bit_depth=bit_depth,
    )
    pcm = _decode_nonempty(request, backend)
    return write_output(output_path, write_wav(pcm))


def convert_to_m4a(
    input_path: str,
    output_path: str,
    backend: Optional[AudioBackend] = None,
    config: Optional[DecoderConfig] = None,
) -> str:
    """Decode input_path and encode it to AAC/M4A at output_path."""
    pcm = _decode_nonempty(DecodeRequest(source=input_path), backend)
    return encode_m4a(pcm, output_path, backend=backend, config=config)


def get_audio_info(
    path: str,
    backend: Optional[AudioBackend] = None,
    config: Optional[DecoderConfig] = None,
) -> AudioDescriptor:
    """Probe path for duration, rate, channels, bit rate and format."""
    return probe(path, backend=backend, config=config)


def trim(
    source: str,
    start_ms: int,
    end_ms: int,
    output_kind: str = OUTPUT_WAV,
    backend: Optional[AudioBackend] = None,
    config: Optional[DecoderConfig] = None,
) -> bytes:
    """
    Decode [start_ms, end_ms) of source and serialize it as WAV or M4A.

    Raises:
        InvalidArgumentsError: If the range or output kind is invalid
        EmptyRangeError: If the range decodes to zero samples
    """
    kind = normalize_output_kind(output_kind)
    request = DecodeRequest(source=source, start_ms=start_ms, end_ms=end_ms)

    pcm = decode(request, backend)
    if pcm.is_empty:
        raise EmptyRangeError("No audio data decoded from trim range")

    logger.info(f"[TRIM] {source} [{start_ms}, {end_ms}) -> {kind} (~{pcm.duration_ms}ms)")
    if kind == OUTPUT_M4A:
        return encode_m4a_bytes(pcm, backend=backend, config=config)
    return write_wav(pcm)


def trim_audio(
    input_path: str,
    output_path: str,
    start_ms: int,
    end_ms: int,
    backend: Optional[AudioBackend] = None,
    config: Optional[DecoderConfig] = None,
) -> str:
    """
    Trim input_path to [start_ms, end_ms) and write output_path.

    The output container follows the output extension: .m4a encodes AAC,
    anything else writes WAV.
    """
    request = DecodeRequest(source=input_path, start_ms=start_ms, end_ms=end_ms)

    pcm = decode(request, backend)
    if pcm.is_empty:
        raise EmptyRangeError("No audio data decoded from trim range")

    if output_kind_for_path(output_path) == OUTPUT_M4A:
        return encode_m4a(pcm, output_path, backend=backend, config=config)
    return write_output(output_path, write_wav(pcm))


def get_waveform(
    path: str,
    number_of_samples: int,
    backend: Optional[AudioBackend] = None,
    config: Optional[DecoderConfig] = None,
) -> List[float]:
    """Decode path and reduce it to a normalized RMS envelope."""
    _check_sample_count(number_of_samples)
    pcm = decode(DecodeRequest(source=path), backend)
    return summarize(pcm, number_of_samples)


# ---------------------------------------------------------------------------
# Bytes variants
# ---------------------------------------------------------------------------

def convert_to_wav_bytes(
    input_data: bytes,
    format_hint: str,
    sample_rate: Optional[int] = None,
    channels: Optional[int] = None,
    bit_depth: Optional[int] = None,
    backend: Optional[AudioBackend] = None,
    config: Optional[DecoderConfig] = None,
) -> bytes:
    request_targets = dict(
        target_sample_rate=sample_rate,
        target_channels=channels,
        target_bit_depth=bit_depth,
    )
    # Validate before touching the filesystem
    DecodeRequest(source=format_hint, **request_targets)

    with scratch_input(input_data, format_hint, _scratch_dir(config)) as path:
        pcm = _decode_nonempty(DecodeRequest(source=path, **request_targets), backend)
        return write_wav(pcm)


def convert_to_m4a_bytes(
    input_data: bytes,
    format_hint: str,
    backend: Optional[AudioBackend] = None,
    config: Optional[DecoderConfig] = None,
) -> bytes:
    with scratch_input(input_data, format_hint, _scratch_dir(config)) as path:
        pcm = _decode_nonempty(DecodeRequest(source=path), backend)
        return encode_m4a_bytes(pcm, backend=backend, config=config)


def get_audio_info_bytes(
    input_data: bytes,
    format_hint: str,
    backend: Optional[AudioBackend] = None,
    config: Optional[DecoderConfig] = None,
) -> AudioDescriptor:
    with scratch_input(input_data, format_hint, _scratch_dir(config)) as path:
        return probe(path, backend=backend, config=config)


def trim_audio_bytes(
    input_data: bytes,
    format_hint: str,
    start_ms: int,
    end_ms: int,
    output_format: str = OUTPUT_WAV,
    backend: Optional[AudioBackend] = None,
    config: Optional[DecoderConfig] = None,
) -> bytes:
    normalize_output_kind(output_format)
    DecodeRequest(source=format_hint, start_ms=start_ms, end_ms=end_ms)

    with scratch_input(input_data, format_hint, _scratch_dir(config)) as path:
        return trim(path, start_ms, end_ms, output_format, backend=backend, config=config)


def get_waveform_bytes(
    input_data: bytes,
    format_hint: str,
    number_of_samples: int,
    backend: Optional[AudioBackend] = None,
    config: Optional[DecoderConfig] = None,
) -> List[float]:
    _check_sample_count(number_of_samples)
    with scratch_input(input_data, format_hint, _scratch_dir(config)) as path:
        return get_waveform(path, number_of_samples, backend=backend, config=config)
