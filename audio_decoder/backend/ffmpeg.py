"""
ffmpeg/ffprobe implementation of the backend capability interface.

- Decode: ffmpeg decodes the first audio stream and writes a WAV stream to
  stdout. The WAV header carries the negotiated format; the payload is read
  in fixed-size chunks whose timestamps are derived from the seek offset and
  the byte position.
- Encode: raw PCM is written to ffmpeg stdin and encoded to AAC in an MP4
  file. MP4 needs a seekable output, so the encoder writes to a path.
- Discover: ffprobe reports format and stream details as JSON.

Every session owns exactly one subprocess and terminates it on close().
"""

from __future__ import annotations

import json
import logging
import subprocess
import threading
from collections import deque
from decimal import Decimal, InvalidOperation
from typing import Any, Deque, Dict, Iterator, List, Optional

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
from audio_decoder.config import DecoderConfig
from audio_decoder.errors import (
    BackendInitError,
    DecodePipelineError,
    DiscoveryError,
    EncodeError,
    ProbeTimeoutError,
    SerializeError,
)
from audio_decoder.pcm.wav import read_wav_header

logger = logging.getLogger(__name__)

NS_PER_SEC = 1_000_000_000

# Output codec per bit depth. 8-bit WAV PCM is unsigned by convention.
PCM_CODECS = {
    8: "pcm_u8",
    16: "pcm_s16le",
    24: "pcm_s24le",
    32: "pcm_s32le",
}

# Raw input format per bit depth for the encoder
RAW_FORMATS = {
    8: "u8",
    16: "s16le",
    24: "s24le",
    32: "s32le",
}

# ffprobe codec name -> media type family
CODEC_FAMILIES = {
    "flac": "audio/x-flac",
    "vorbis": "audio/x-vorbis",
    "opus": "audio/x-opus",
    "alac": "audio/x-alac",
    "amr_nb": "audio/AMR",
    "amr_wb": "audio/AMR-WB",
}

STDERR_TAIL_LINES = 20
VERSION_TIMEOUT_SEC = 10.0


def media_type_for_codec(codec_name: str, container: str = "") -> MediaType:
    """
    Map an ffprobe codec name (plus container name) to a media type.

    MPEG audio layers 1-3 report as mpeg_version 1 with the matching layer;
    AAC reports as mpeg_version 4. Raw PCM is labelled by its container.
    """
    codec_name = (codec_name or "").lower()
    containers = (container or "").lower().split(",")

    if codec_name[:3] in ("mp1", "mp2", "mp3"):
        return MediaType("audio/mpeg", mpeg_version=1, layer=int(codec_name[2]))
    if codec_name.startswith("aac"):
        return MediaType("audio/mpeg", mpeg_version=4)
    if codec_name.startswith("wma"):
        return MediaType("audio/x-wma")
    if codec_name.startswith("pcm_"):
        if "wav" in containers:
            return MediaType("audio/x-wav")
        if "aiff" in containers:
            return MediaType("audio/x-aiff")
        return MediaType("audio/x-raw")
    if codec_name in CODEC_FAMILIES:
        return MediaType(CODEC_FAMILIES[codec_name])
    return MediaType(f"audio/x-{codec_name}" if codec_name else "")


def _int_field(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _duration_ns(value: Any) -> Optional[int]:
    try:
        return int(Decimal(str(value)) * NS_PER_SEC)
    except (InvalidOperation, ValueError):
        return None


def _spawn(cmd: List[str], **kwargs) -> subprocess.Popen:
    try:
        return subprocess.Popen(cmd, **kwargs)
    except (FileNotFoundError, PermissionError) as e:
        raise BackendInitError(f"Cannot start {cmd[0]}: {e}")


class _StderrCollector:
    """Drains a subprocess stderr pipe on a daemon thread, keeping the tail."""

    def __init__(self, stream, name: str) -> None:
        self._stream = stream
        self._lines: Deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    def _run(self) -> None:
        try:
            for raw in iter(self._stream.readline, b""):
                line = raw.decode("utf-8", errors="replace").rstrip()
                if line:
                    self._lines.append(line)
                    logger.debug(f"[FFMPEG] {line}")
        except (OSError, ValueError):
            # Pipe closed underneath us during teardown
            pass

    def tail(self, timeout: float = 1.0) -> str:
        self._thread.join(timeout=timeout)
        return "; ".join(self._lines) or "no diagnostic output"


def _terminate(proc: Optional[subprocess.Popen], label: str) -> None:
    """Close pipes and stop proc if still running. Safe to call multiple times."""
    if proc is None:
        return

    for stream in (proc.stdin, proc.stdout):
        if stream:
            try:
                stream.close()
            except OSError:
                pass

    if proc.poll() is None:
        try:
            proc.terminate()
            proc.wait(timeout=2)
        except subprocess.TimeoutExpired:
            logger.warning(f"[FFMPEG] Process didn't terminate, killing: {label}")
            proc.kill()
            proc.wait(timeout=1)

    if proc.stderr:
        try:
            proc.stderr.close()
        except OSError:
            pass


class FFmpegDecodeSession(DecodeSession):
    """
    One ffmpeg decode subprocess.

    Output is a WAV stream on stdout; the header is parsed before the first
    chunk so every chunk carries the negotiated StreamFormat.
    """

    def __init__(self, cmd: List[str], location: str, chunk_frames: int, start_ns: int = 0) -> None:
        self.location = location
        self.chunk_frames = chunk_frames
        self.start_ns = start_ns
        self.proc: Optional[subprocess.Popen] = _spawn(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        self._stderr = _StderrCollector(self.proc.stderr, name="ffmpeg-decode-stderr")
        logger.debug(f"[DECODE] ffmpeg started (pid={self.proc.pid}): {' '.join(cmd)}")

    def _fail(self, reason: str) -> DecodePipelineError:
        return DecodePipelineError(f"{reason} ({self.location}): {self._stderr.tail()}")

    def chunks(self) -> Iterator[DecodedChunk]:
        assert self.proc is not None and self.proc.stdout is not None
        stdout = self.proc.stdout

        try:
            header = read_wav_header(stdout.read)
        except SerializeError as e:
            returncode = self.proc.wait()
            if returncode != 0:
                raise self._fail(f"Failed to decode audio (exit code {returncode})")
            raise self._fail(f"Decoder produced unreadable output: {e}")

        stream_format = StreamFormat(
            sample_rate=header.sample_rate,
            channels=header.channels,
            bits_per_sample=header.bits_per_sample,
        )
        if stream_format.block_align <= 0 or stream_format.byte_rate <= 0:
            raise self._fail(f"Decoder negotiated an unusable format {stream_format}")

        bytes_per_chunk = self.chunk_frames * stream_format.block_align
        offset = 0

        while True:
            data = stdout.read(bytes_per_chunk)
            if not data:
                break

            aligned = len(data) - len(data) % stream_format.block_align
            if aligned != len(data):
                logger.warning(
                    f"[DECODE] Dropping {len(data) - aligned} trailing bytes of a partial frame"
                )
                data = data[:aligned]
                if not data:
                    break

            pts_ns = self.start_ns + offset * NS_PER_SEC // stream_format.byte_rate
            offset += len(data)
            yield DecodedChunk(data=data, pts_ns=pts_ns, stream_format=stream_format)

        returncode = self.proc.wait()
        if returncode != 0:
            raise self._fail(f"Decoder exited with code {returncode}")

    def close(self) -> None:
        proc, self.proc = self.proc, None
        _terminate(proc, self.location)


class FFmpegEncodeSession(EncodeSession):
    """One ffmpeg AAC/MP4 encode subprocess fed through stdin."""

    def __init__(self, cmd: List[str], output_path: str) -> None:
        self.output_path = output_path
        self.proc: Optional[subprocess.Popen] = _spawn(
            cmd,
            stdin=subprocess.PIPE,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )
        self._stderr = _StderrCollector(self.proc.stderr, name="ffmpeg-encode-stderr")
        self._last_pts: Optional[int] = None
        self._finished = False
        logger.debug(f"[ENCODE] ffmpeg started (pid={self.proc.pid}): {' '.join(cmd)}")

    def write(self, data: bytes, pts_ns: int) -> None:
        if self.proc is None or self.proc.stdin is None or self._finished:
            raise EncodeError("Encoder is not accepting data")
        if self._last_pts is not None and pts_ns <= self._last_pts:
            raise EncodeError(f"Non-monotonic timestamp {pts_ns} after {self._last_pts}")
        self._last_pts = pts_ns

        try:
            self.proc.stdin.write(data)
        except (BrokenPipeError, OSError) as e:
            raise EncodeError(f"M4A encoding failed: {e}: {self._stderr.tail()}")

    def finish(self) -> None:
        if self.proc is None or self._finished:
            raise EncodeError("Encoder already finalized")
        self._finished = True

        try:
            self.proc.stdin.close()
        except (BrokenPipeError, OSError) as e:
            raise EncodeError(f"M4A encoding failed: {e}: {self._stderr.tail()}")

        returncode = self.proc.wait()
        if returncode != 0:
            raise EncodeError(
                f"M4A encoding failed (exit code {returncode}): {self._stderr.tail()}"
            )
        logger.debug(f"[ENCODE] ffmpeg finalized {self.output_path}")

    def close(self) -> None:
        proc, self.proc = self.proc, None
        _terminate(proc, self.output_path)


class FFmpegBackend(AudioBackend):
    """AudioBackend driving the ffmpeg and ffprobe command-line tools."""

    name = "ffmpeg"

    def __init__(self, config: Optional[DecoderConfig] = None) -> None:
        self.config = config or DecoderConfig()
        self._initialized = False
        self._init_lock = threading.Lock()

    def _check_binary(self, binary: str) -> None:
        try:
            result = subprocess.run(
                [binary, "-hide_banner", "-version"],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=VERSION_TIMEOUT_SEC,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise BackendInitError(f"{binary} is not available: {e}")
        except subprocess.TimeoutExpired:
            raise BackendInitError(f"{binary} -version timed out")
        if result.returncode != 0:
            raise BackendInitError(
                f"{binary} -version exited with code {result.returncode}: "
                f"{result.stderr.decode('utf-8', errors='replace').strip()}"
            )
        version = result.stdout.decode("utf-8", errors="replace").splitlines()
        logger.debug(f"[BACKEND] {version[0] if version else binary}")

    def initialize(self) -> None:
        with self._init_lock:
            if self._initialized:
                return
            self._check_binary(self.config.ffmpeg_path)
            self._check_binary(self.config.ffprobe_path)
            self._initialized = True

    def build_decode_cmd(
        self,
        location: str,
        start_ms: Optional[int] = None,
        sample_rate: Optional[int] = None,
        channels: Optional[int] = None,
        bit_depth: int = 16,
    ) -> List[str]:
        if bit_depth not in PCM_CODECS:
            raise DecodePipelineError(f"Unsupported output bit depth: {bit_depth}")

        cmd = [self.config.ffmpeg_path, "-hide_banner", "-nostdin", "-loglevel", "error"]
        if start_ms is not None and start_ms > 0:
            cmd += ["-ss", f"{start_ms / 1000:.3f}"]
        cmd += [
            "-i", location,
            "-map", "0:a:0",
            "-vn",
            "-map_metadata", "-1",
            "-flags", "+bitexact",
            "-c:a", PCM_CODECS[bit_depth],
        ]
        if sample_rate:
            cmd += ["-ar", str(sample_rate)]
        if channels:
            cmd += ["-ac", str(channels)]
        cmd += ["-f", "wav", "pipe:1"]
        return cmd

    def build_encode_cmd(
        self,
        output_path: str,
        sample_rate: int,
        channels: int,
        bits_per_sample: int,
        bitrate_bps: int,
    ) -> List[str]:
        if bits_per_sample not in RAW_FORMATS:
            raise EncodeError(f"Unsupported input bit depth: {bits_per_sample}")
        return [
            self.config.ffmpeg_path,
            "-hide_banner",
            "-nostdin",
            "-loglevel", "error",
            "-y",
            "-f", RAW_FORMATS[bits_per_sample],
            "-ar", str(sample_rate),
            "-ac", str(channels),
            "-i", "pipe:0",
            "-c:a", "aac",
            "-b:a", str(bitrate_bps),
            "-f", "mp4",
            output_path,
        ]

    def build_discover_cmd(self, location: str) -> List[str]:
        return [
            self.config.ffprobe_path,
            "-v", "error",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            location,
        ]

    def open_decoder(
        self,
        location: str,
        start_ms: Optional[int] = None,
        sample_rate: Optional[int] = None,
        channels: Optional[int] = None,
        bit_depth: int = 16,
    ) -> FFmpegDecodeSession:
        cmd = self.build_decode_cmd(location, start_ms, sample_rate, channels, bit_depth)
        start_ns = (start_ms or 0) * 1_000_000
        return FFmpegDecodeSession(cmd, location, self.config.chunk_frames, start_ns=start_ns)

    def open_m4a_encoder(
        self,
        output_path: str,
        sample_rate: int,
        channels: int,
        bits_per_sample: int,
        bitrate_bps: int,
    ) -> FFmpegEncodeSession:
        cmd = self.build_encode_cmd(output_path, sample_rate, channels, bits_per_sample, bitrate_bps)
        return FFmpegEncodeSession(cmd, output_path)

    def discover(self, location: str, timeout_sec: float) -> DiscoveryInfo:
        cmd = self.build_discover_cmd(location)
        try:
            result = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=timeout_sec,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise BackendInitError(f"Failed to create discoverer: {e}")
        except subprocess.TimeoutExpired:
            raise ProbeTimeoutError(
                f"Discovery of {location} timed out after {timeout_sec:g}s"
            )

        if result.returncode != 0:
            message = result.stderr.decode("utf-8", errors="replace").strip()
            raise DiscoveryError(f"Failed to discover audio info: {message or 'unknown error'}")

        try:
            report = json.loads(result.stdout.decode("utf-8", errors="replace") or "{}")
        except ValueError as e:
            raise DiscoveryError(f"Failed to discover audio info: unreadable report ({e})")

        return self._parse_report(report)

    @staticmethod
    def _parse_report(report: Dict[str, Any]) -> DiscoveryInfo:
        fmt = report.get("format") or {}
        container = fmt.get("format_name", "") or ""

        audio_stream = None
        for stream in report.get("streams") or []:
            if stream.get("codec_type") == "audio":
                audio_stream = StreamInfo(
                    media_type=media_type_for_codec(stream.get("codec_name", ""), container),
                    sample_rate=_int_field(stream.get("sample_rate")),
                    channels=_int_field(stream.get("channels")),
                    bit_rate=_int_field(stream.get("bit_rate")),
                )
                break

        return DiscoveryInfo(
            duration_ns=_duration_ns(fmt.get("duration")),
            container=container,
            audio_stream=audio_stream,
        )
