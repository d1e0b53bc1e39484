"""
Canonical PCM WAV serialization.

write_wav() produces the fixed 44-byte-header RIFF/WAVE layout (format tag 1).
read_wav() and read_wav_header() parse PCM WAV data, including streams whose
size fields were never patched (piped encoder output) and files carrying
extra chunks or a WAVE_FORMAT_EXTENSIBLE fmt chunk.
"""

import struct
from dataclasses import dataclass
from typing import Callable, Optional

from audio_decoder.errors import EmptySourceError, SerializeError
from audio_decoder.models import PcmBuffer

WAV_HEADER_SIZE = 44
WAVE_FORMAT_PCM = 0x0001
WAVE_FORMAT_EXTENSIBLE = 0xFFFE

# Size fields a non-seekable writer leaves behind
_UNSET_SIZES = (0, 0xFFFFFFFF)

_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")
_CHUNK = struct.Struct("<4sI")
_FMT = struct.Struct("<HHIIHH")


@dataclass(frozen=True)
class WavHeader:
    """
    Parsed RIFF/WAVE header up to the start of the data payload.

    Attributes:
        format_tag: WAVE_FORMAT_PCM or WAVE_FORMAT_EXTENSIBLE
        channels: Interleaved channel count
        sample_rate: Frames per second
        bits_per_sample: Container sample width
        data_size: Declared payload size, None if the writer left it unset
    """
    format_tag: int
    channels: int
    sample_rate: int
    bits_per_sample: int
    data_size: Optional[int]


def write_wav(pcm: PcmBuffer) -> bytes:
    """
    Serialize pcm as a canonical PCM WAV file.

    Args:
        pcm: Decoded PCM buffer

    Returns:
        bytes: 44-byte header followed by pcm.data

    Raises:
        EmptySourceError: If pcm carries no data
    """
    if pcm.is_empty:
        raise EmptySourceError("No audio data decoded from input file")

    data_size = len(pcm.data)
    header = _HEADER.pack(
        b"RIFF",
        36 + data_size,
        b"WAVE",
        b"fmt ",
        16,
        WAVE_FORMAT_PCM,
        pcm.channels,
        pcm.sample_rate,
        pcm.byte_rate,
        pcm.block_align,
        pcm.bits_per_sample,
        b"data",
        data_size,
    )
    return header + pcm.data


def _read_exact(read: Callable[[int], bytes], size: int, what: str) -> bytes:
    data = b""
    while len(data) < size:
        part = read(size - len(data))
        if not part:
            raise SerializeError(f"Truncated WAV header while reading {what}")
        data += part
    return data


def read_wav_header(read: Callable[[int], bytes]) -> WavHeader:
    """
    Consume a RIFF/WAVE header from a byte source.

    Reads chunks until the "data" chunk header; on return the next byte
    available from read() is the first PCM byte.

    Args:
        read: Callable with file.read() semantics

    Raises:
        SerializeError: If the stream is not a PCM WAV stream
    """
    riff, _, wave = struct.unpack("<4sI4s", _read_exact(read, 12, "RIFF header"))
    if riff != b"RIFF" or wave != b"WAVE":
        raise SerializeError("Not a RIFF/WAVE stream")

    fmt = None
    while True:
        chunk_id, chunk_size = _CHUNK.unpack(_read_exact(read, _CHUNK.size, "chunk header"))

        if chunk_id == b"data":
            if fmt is None:
                raise SerializeError("WAV data chunk precedes fmt chunk")
            format_tag, channels, sample_rate, _, _, bits = fmt
            return WavHeader(
                format_tag=format_tag,
                channels=channels,
                sample_rate=sample_rate,
                bits_per_sample=bits,
                data_size=None if chunk_size in _UNSET_SIZES else chunk_size,
            )

        body = _read_exact(read, chunk_size + (chunk_size & 1), chunk_id.decode("latin-1"))
        if chunk_id == b"fmt ":
            if chunk_size < _FMT.size:
                raise SerializeError(f"WAV fmt chunk too short ({chunk_size} bytes)")
            fmt = _FMT.unpack(body[:_FMT.size])
            if fmt[0] not in (WAVE_FORMAT_PCM, WAVE_FORMAT_EXTENSIBLE):
                raise SerializeError(f"Unsupported WAV format tag 0x{fmt[0]:04x}")


def read_wav(data: bytes) -> PcmBuffer:
    """
    Parse a PCM WAV file held in memory.

    Raises:
        SerializeError: If data is not a PCM WAV file
    """
    offset = 0

    def read(size: int) -> bytes:
        nonlocal offset
        chunk = data[offset:offset + size]
        offset += len(chunk)
        return chunk

    header = read_wav_header(read)
    payload = data[offset:]
    if header.data_size is not None:
        payload = payload[:header.data_size]

    block_align = header.channels * header.bits_per_sample // 8
    if block_align:
        payload = payload[:len(payload) - len(payload) % block_align]

    try:
        return PcmBuffer(
            data=payload,
            sample_rate=header.sample_rate,
            channels=header.channels,
            bits_per_sample=header.bits_per_sample,
        )
    except ValueError as e:
        raise SerializeError(f"Inconsistent WAV header: {e}")
