"""
Backend capability interface for audio_decoder.

The decode engine, encoder and prober are written once against AudioBackend.
A backend supplies three black-box capabilities:

- decode: demux + decode a source into interleaved PCM chunks, with optional
  seek and rate/channel/bit-depth negotiation
- encode: accept raw PCM and produce an AAC track in an MP4 container
- discover: report container duration and the first audio stream's media type

Sessions are context managers. Leaving the with-block always tears down the
underlying pipeline, including on early break and on exceptions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, Optional


@dataclass(frozen=True)
class StreamFormat:
    """Negotiated PCM layout of a decode session's output."""
    sample_rate: int
    channels: int
    bits_per_sample: int

    @property
    def block_align(self) -> int:
        return self.channels * self.bits_per_sample // 8

    @property
    def byte_rate(self) -> int:
        return self.sample_rate * self.block_align


@dataclass(frozen=True)
class DecodedChunk:
    """
    One decoded buffer.

    Attributes:
        data: Interleaved PCM bytes (frame-aligned)
        pts_ns: Presentation timestamp in nanoseconds, None if unknown
        stream_format: Layout of data
    """
    data: bytes
    pts_ns: Optional[int]
    stream_format: StreamFormat


@dataclass(frozen=True)
class MediaType:
    """
    Negotiated media type of an elementary audio stream.

    family is a media-type name such as "audio/mpeg" or "audio/x-flac";
    mpeg_version and layer are only meaningful for the "audio/mpeg" family.
    """
    family: str
    mpeg_version: int = 0
    layer: int = 0


@dataclass(frozen=True)
class StreamInfo:
    media_type: MediaType
    sample_rate: int = 0
    channels: int = 0
    bit_rate: int = 0


@dataclass(frozen=True)
class DiscoveryInfo:
    """
    Discovery result for one source.

    Attributes:
        duration_ns: Container global duration, None if unavailable
        container: Backend container/format name ("" if unknown)
        audio_stream: First audio stream, None if the source has none
    """
    duration_ns: Optional[int]
    container: str = ""
    audio_stream: Optional[StreamInfo] = None


class DecodeSession(ABC):
    """A running decode pipeline. Use as a context manager."""

    @abstractmethod
    def chunks(self) -> Iterator[DecodedChunk]:
        """
        Yield decoded chunks in timestamp order until end-of-stream.

        Raises:
            DecodePipelineError: If the pipeline fails while decoding
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Tear down the pipeline. Idempotent."""
        ...

    def __enter__(self) -> "DecodeSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class EncodeSession(ABC):
    """
    A running AAC/MP4 encode pipeline. Use as a context manager.

    Leaving the with-block without calling finish() aborts the encode.
    """

    @abstractmethod
    def write(self, data: bytes, pts_ns: int) -> None:
        """
        Push one chunk of raw PCM.

        Raises:
            EncodeError: If the pipeline rejects the write
        """
        ...

    @abstractmethod
    def finish(self) -> None:
        """
        Signal end-of-stream and wait for the container to be finalized.

        Raises:
            EncodeError: If the pipeline fails to finalize
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Tear down the pipeline. Idempotent."""
        ...

    def __enter__(self) -> "EncodeSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class AudioBackend(ABC):
    """Capability interface implemented once per native backend."""

    name: str = "abstract"

    @abstractmethod
    def initialize(self) -> None:
        """
        Start the backend subsystem. Idempotent.

        Raises:
            BackendInitError: If the backend cannot start
        """
        ...

    @abstractmethod
    def open_decoder(
        self,
        location: str,
        start_ms: Optional[int] = None,
        sample_rate: Optional[int] = None,
        channels: Optional[int] = None,
        bit_depth: int = 16,
    ) -> DecodeSession:
        """
        Build a decode pipeline for location.

        Args:
            location: Local path or URI understood by the backend
            start_ms: Seek target before output starts (keyframe-snapped)
            sample_rate: Output rate, None keeps the source rate
            channels: Output channel count, None keeps the source layout
            bit_depth: Output sample width in bits

        Raises:
            BackendInitError: If the backend cannot start
            DecodePipelineError: If the pipeline cannot be built
        """
        ...

    @abstractmethod
    def open_m4a_encoder(
        self,
        output_path: str,
        sample_rate: int,
        channels: int,
        bits_per_sample: int,
        bitrate_bps: int,
    ) -> EncodeSession:
        """
        Build an AAC-in-MP4 encode pipeline writing to output_path.

        Raises:
            BackendInitError: If the backend cannot start
            EncodeError: If the pipeline cannot be built
        """
        ...

    @abstractmethod
    def discover(self, location: str, timeout_sec: float) -> DiscoveryInfo:
        """
        Inspect location without a full decode.

        Raises:
            BackendInitError: If the discovery session cannot be created
            ProbeTimeoutError: If discovery exceeds timeout_sec
            DiscoveryError: If the source is unreadable or unsupported
        """
        ...
