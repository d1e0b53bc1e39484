"""
Data model shared by the decode, serialize, encode and probe components.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from audio_decoder.errors import InvalidArgumentsError

# Output PCM defaults: 16-bit signed little-endian, source rate/channels kept
DEFAULT_BIT_DEPTH = 16
SUPPORTED_BIT_DEPTHS = (8, 16, 24, 32)

WaveformEnvelope = List[float]


@dataclass(frozen=True)
class PcmBuffer:
    """
    Flat interleaved PCM produced by one decode call.

    Attributes:
        data: Raw PCM bytes (frame-aligned when non-empty)
        sample_rate: Samples per second per channel
        channels: Interleaved channel count
        bits_per_sample: Sample width in bits
    """
    data: bytes
    sample_rate: int
    channels: int
    bits_per_sample: int

    def __post_init__(self) -> None:
        if self.data:
            if self.block_align <= 0:
                raise ValueError(
                    f"PCM data present but descriptor is empty "
                    f"(channels={self.channels}, bits={self.bits_per_sample})"
                )
            if len(self.data) % self.block_align != 0:
                raise ValueError(
                    f"PCM data length {len(self.data)} is not a multiple of "
                    f"block align {self.block_align}"
                )

    @classmethod
    def empty(cls) -> "PcmBuffer":
        return cls(data=b"", sample_rate=0, channels=0, bits_per_sample=0)

    @property
    def block_align(self) -> int:
        """Bytes per interleaved frame."""
        return self.channels * self.bits_per_sample // 8

    @property
    def byte_rate(self) -> int:
        """Bytes per second of audio."""
        return self.sample_rate * self.block_align

    @property
    def frame_count(self) -> int:
        if self.block_align == 0:
            return 0
        return len(self.data) // self.block_align

    @property
    def duration_ms(self) -> int:
        if self.byte_rate == 0:
            return 0
        return len(self.data) * 1000 // self.byte_rate

    @property
    def is_empty(self) -> bool:
        return not self.data


class AudioFormat(str, enum.Enum):
    """Normalized format tag reported by the metadata prober."""
    PCM = "pcm"
    MP3 = "mp3"
    AAC = "aac"
    FLAC = "flac"
    OGG = "ogg"
    OPUS = "opus"
    WAV = "wav"
    AIFF = "aiff"
    ALAC = "alac"
    AMR = "amr"
    WMA = "wma"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class AudioDescriptor:
    """Metadata probe result."""
    duration_ms: int = 0
    sample_rate: int = 0
    channels: int = 0
    bit_rate: int = 0
    format: AudioFormat = AudioFormat.UNKNOWN

    def to_dict(self) -> Dict[str, Any]:
        """Wire record as returned to the dispatch layer."""
        return {
            "durationMs": self.duration_ms,
            "sampleRate": self.sample_rate,
            "channels": self.channels,
            "bitRate": self.bit_rate,
            "format": self.format.value,
        }


@dataclass(frozen=True)
class DecodeRequest:
    """
    One decode call: source plus optional range and output retargeting.

    Non-positive target rate/channels mean "keep the source value" and are
    normalized to None. Range and bit depth are validated eagerly so no
    backend work starts on a malformed request.
    """
    source: str
    start_ms: Optional[int] = None
    end_ms: Optional[int] = None
    target_sample_rate: Optional[int] = None
    target_channels: Optional[int] = None
    target_bit_depth: Optional[int] = None

    def __post_init__(self) -> None:
        if self.target_sample_rate is not None and self.target_sample_rate <= 0:
            object.__setattr__(self, "target_sample_rate", None)
        if self.target_channels is not None and self.target_channels <= 0:
            object.__setattr__(self, "target_channels", None)
        if self.target_bit_depth is not None and self.target_bit_depth <= 0:
            object.__setattr__(self, "target_bit_depth", None)

        if self.start_ms is not None and self.start_ms < 0:
            raise InvalidArgumentsError(f"startMs must be >= 0 (got {self.start_ms})")
        if self.end_ms is not None and self.end_ms < 0:
            raise InvalidArgumentsError(f"endMs must be >= 0 (got {self.end_ms})")
        if (
            self.start_ms is not None
            and self.end_ms is not None
            and self.end_ms <= self.start_ms
        ):
            raise InvalidArgumentsError(
                f"endMs must be greater than startMs (got {self.start_ms}..{self.end_ms})"
            )
        if (
            self.target_bit_depth is not None
            and self.target_bit_depth not in SUPPORTED_BIT_DEPTHS
        ):
            raise InvalidArgumentsError(
                f"bitDepth must be one of {', '.join(str(b) for b in SUPPORTED_BIT_DEPTHS)} "
                f"(got {self.target_bit_depth})"
            )

    @property
    def output_bit_depth(self) -> int:
        return self.target_bit_depth or DEFAULT_BIT_DEPTH
