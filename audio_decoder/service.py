# audio_decoder/service.py

import enum
import logging
import threading
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from audio_decoder import operations
from audio_decoder.artifacts import normalize_extension
from audio_decoder.backend import AudioBackend
from audio_decoder.backend.ffmpeg import FFmpegBackend
from audio_decoder.config import DecoderConfig, get_global_config
from audio_decoder.errors import AudioDecoderError, InvalidArgumentsError
from audio_decoder.models import DecodeRequest

logger = logging.getLogger(__name__)

# Error codes reported on the wire
INVALID_ARGUMENTS = "INVALID_ARGUMENTS"
CONVERSION_ERROR = "CONVERSION_ERROR"
INFO_ERROR = "INFO_ERROR"
TRIM_ERROR = "TRIM_ERROR"
WAVEFORM_ERROR = "WAVEFORM_ERROR"


class ResultStatus(str, enum.Enum):
    SUCCESS = "success"
    ERROR = "error"
    NOT_IMPLEMENTED = "not_implemented"


@dataclass(frozen=True)
class MethodResult:
    """
    Outcome of one method call.

    Exactly one of value (on success) or code/message (on error) is set.
    """
    status: ResultStatus
    value: Any = None
    code: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, value: Any) -> "MethodResult":
        return cls(status=ResultStatus.SUCCESS, value=value)

    @classmethod
    def error(cls, code: str, message: str) -> "MethodResult":
        return cls(status=ResultStatus.ERROR, code=code, message=message)

    @classmethod
    def not_implemented(cls) -> "MethodResult":
        return cls(status=ResultStatus.NOT_IMPLEMENTED)

    @property
    def ok(self) -> bool:
        return self.status is ResultStatus.SUCCESS


def _resolved(result: MethodResult) -> "Future[MethodResult]":
    future: "Future[MethodResult]" = Future()
    future.set_result(result)
    return future


# ---------------------------------------------------------------------------
# Argument extraction
# ---------------------------------------------------------------------------

def _require(args: Mapping, names: Tuple[str, ...], message: str) -> None:
    if any(args.get(name) is None for name in names):
        raise InvalidArgumentsError(message)


def _string(args: Mapping, name: str) -> str:
    value = args[name]
    if not isinstance(value, str) or not value:
        raise InvalidArgumentsError(f"{name} must be a non-empty string")
    return value


def _int(args: Mapping, name: str) -> int:
    value = args[name]
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentsError(f"{name} must be an integer")
    return value


def _optional_int(args: Mapping, name: str) -> Optional[int]:
    """Integer argument if present; absent or non-integer values are ignored."""
    value = args.get(name)
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _bytes(args: Mapping, name: str) -> bytes:
    value = args[name]
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise InvalidArgumentsError(f"{name} must be a byte array")
    return bytes(value)


def _targets(args: Mapping) -> Dict[str, Optional[int]]:
    targets = {
        "sample_rate": _optional_int(args, "sampleRate"),
        "channels": _optional_int(args, "channels"),
        "bit_depth": _optional_int(args, "bitDepth"),
    }
    DecodeRequest(
        source="",
        target_sample_rate=targets["sample_rate"],
        target_channels=targets["channels"],
        target_bit_depth=targets["bit_depth"],
    )
    return targets


def _range(args: Mapping) -> Tuple[int, int]:
    start_ms, end_ms = _int(args, "startMs"), _int(args, "endMs")
    DecodeRequest(source="", start_ms=start_ms, end_ms=end_ms)
    return start_ms, end_ms


def _sample_count(args: Mapping) -> int:
    number_of_samples = _int(args, "numberOfSamples")
    if number_of_samples <= 0:
        raise InvalidArgumentsError(
            f"numberOfSamples must be > 0 (got {number_of_samples})"
        )
    return number_of_samples


def _input_data(args: Mapping) -> Tuple[bytes, str]:
    format_hint = _string(args, "formatHint")
    normalize_extension(format_hint)
    return _bytes(args, "inputData"), format_hint


class AudioDecoderService:
    """
    Method-call surface over the audio operations.

    Arguments are validated synchronously; valid calls run on a worker pool
    and resolve to a MethodResult. Failures never escape as exceptions: each
    is reported as an (error code, message) pair.
    """

    def __init__(
        self,
        backend: Optional[AudioBackend] = None,
        config: Optional[DecoderConfig] = None,
    ):
        """
        Initialize AudioDecoderService.

        Args:
            backend: Backend for every operation (default: an ffmpeg backend
                built from config on first use)
            config: Configuration (default: global config)
        """
        self.config = config or get_global_config()
        self.backend = backend
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="audio-decoder",
        )
        self._lock = threading.Lock()
        self._closed = False
        self._backend_lock = threading.Lock()

        # method name -> (argument parser, error code)
        self._methods: Dict[str, Tuple[Callable[[Mapping], Callable[[], Any]], str]] = {
            "convertToWav": (self._convert_to_wav, CONVERSION_ERROR),
            "convertToM4a": (self._convert_to_m4a, CONVERSION_ERROR),
            "getAudioInfo": (self._get_audio_info, INFO_ERROR),
            "trimAudio": (self._trim_audio, TRIM_ERROR),
            "getWaveform": (self._get_waveform, WAVEFORM_ERROR),
            "convertToWavBytes": (self._convert_to_wav_bytes, CONVERSION_ERROR),
            "convertToM4aBytes": (self._convert_to_m4a_bytes, CONVERSION_ERROR),
            "getAudioInfoBytes": (self._get_audio_info_bytes, INFO_ERROR),
            "trimAudioBytes": (self._trim_audio_bytes, TRIM_ERROR),
            "getWaveformBytes": (self._get_waveform_bytes, WAVEFORM_ERROR),
        }

    @property
    def methods(self) -> Tuple[str, ...]:
        return tuple(self._methods)

    def submit(self, method: str, args: Any) -> "Future[MethodResult]":
        """
        Validate args and schedule method on the worker pool.

        Returns:
            Future resolving to a MethodResult. Unknown methods, invalid
            arguments and calls after shutdown() resolve immediately; the
            latter to an error under the method's error code.
        """
        entry = self._methods.get(method)
        if entry is None:
            logger.warning(f"[SERVICE] Unknown method: {method}")
            return _resolved(MethodResult.not_implemented())

        parse, error_code = entry
        try:
            if not isinstance(args, Mapping):
                raise InvalidArgumentsError("Arguments map is required")
            call = parse(args)
        except InvalidArgumentsError as e:
            logger.warning(f"[SERVICE] {method}: {e}")
            return _resolved(MethodResult.error(INVALID_ARGUMENTS, str(e)))

        with self._lock:
            if self._closed:
                logger.warning(f"[SERVICE] {method} rejected: service is shut down")
                return _resolved(MethodResult.error(error_code, "AudioDecoderService is shut down"))
            return self._executor.submit(self._run, method, call, error_code)

    def handle(self, method: str, args: Any) -> MethodResult:
        """Run method and wait for its result."""
        return self.submit(method, args).result()

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "AudioDecoderService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def _get_backend(self) -> AudioBackend:
        """
        Backend for this service, built from self.config on first use.

        Raises:
            BackendInitError: If the backend cannot be initialized
        """
        with self._backend_lock:
            if self.backend is None:
                backend = FFmpegBackend(self.config)
                backend.initialize()
                self.backend = backend
                logger.info(f"[SERVICE] Initialized {backend.name} backend")
            return self.backend

    def _call_options(self) -> Dict[str, Any]:
        return {"backend": self._get_backend(), "config": self.config}

    def _run(self, method: str, call: Callable[[], Any], error_code: str) -> MethodResult:
        try:
            value = call()
        except InvalidArgumentsError as e:
            logger.warning(f"[SERVICE] {method}: {e}")
            return MethodResult.error(INVALID_ARGUMENTS, str(e))
        except (AudioDecoderError, OSError) as e:
            logger.error(f"[SERVICE] {method} failed ({error_code}): {e}")
            return MethodResult.error(error_code, str(e))
        except Exception as e:
            logger.error(f"[SERVICE] {method} failed unexpectedly: {e}", exc_info=True)
            return MethodResult.error(error_code, f"Unexpected error: {e}")

        logger.debug(f"[SERVICE] {method} succeeded")
        return MethodResult.success(value)

    # -----------------------------------------------------------------------
    # Argument parsers: validate, then return the deferred call
    # -----------------------------------------------------------------------

    def _convert_to_wav(self, args: Mapping) -> Callable[[], Any]:
        _require(args, ("inputPath", "outputPath"), "inputPath and outputPath are required")
        input_path, output_path = _string(args, "inputPath"), _string(args, "outputPath")
        targets = _targets(args)
        return lambda: operations.convert_to_wav(
            input_path, output_path, **self._call_options(), **targets
        )

    def _convert_to_m4a(self, args: Mapping) -> Callable[[], Any]:
        _require(args, ("inputPath", "outputPath"), "inputPath and outputPath are required")
        input_path, output_path = _string(args, "inputPath"), _string(args, "outputPath")
        return lambda: operations.convert_to_m4a(input_path, output_path, **self._call_options())

    def _get_audio_info(self, args: Mapping) -> Callable[[], Any]:
        _require(args, ("path",), "path is required")
        path = _string(args, "path")
        return lambda: operations.get_audio_info(path, **self._call_options()).to_dict()

    def _trim_audio(self, args: Mapping) -> Callable[[], Any]:
        _require(
            args,
            ("inputPath", "outputPath", "startMs", "endMs"),
            "inputPath, outputPath, startMs and endMs are required",
        )
        input_path, output_path = _string(args, "inputPath"), _string(args, "outputPath")
        start_ms, end_ms = _range(args)
        return lambda: operations.trim_audio(
            input_path, output_path, start_ms, end_ms, **self._call_options()
        )

    def _get_waveform(self, args: Mapping) -> Callable[[], Any]:
        _require(args, ("path", "numberOfSamples"), "path and numberOfSamples are required")
        path = _string(args, "path")
        number_of_samples = _sample_count(args)
        return lambda: operations.get_waveform(path, number_of_samples, **self._call_options())

    def _convert_to_wav_bytes(self, args: Mapping) -> Callable[[], Any]:
        _require(args, ("inputData", "formatHint"), "inputData and formatHint are required")
        input_data, format_hint = _input_data(args)
        targets = _targets(args)
        return lambda: operations.convert_to_wav_bytes(
            input_data, format_hint, **self._call_options(), **targets
        )

    def _convert_to_m4a_bytes(self, args: Mapping) -> Callable[[], Any]:
        _require(args, ("inputData", "formatHint"), "inputData and formatHint are required")
        input_data, format_hint = _input_data(args)
        return lambda: operations.convert_to_m4a_bytes(
            input_data, format_hint, **self._call_options()
        )

    def _get_audio_info_bytes(self, args: Mapping) -> Callable[[], Any]:
        _require(args, ("inputData", "formatHint"), "inputData and formatHint are required")
        input_data, format_hint = _input_data(args)
        return lambda: operations.get_audio_info_bytes(
            input_data, format_hint, **self._call_options()
        ).to_dict()

    def _trim_audio_bytes(self, args: Mapping) -> Callable[[], Any]:
        _require(
            args,
            ("inputData", "formatHint", "startMs", "endMs"),
            "inputData, formatHint, startMs and endMs are required",
        )
        input_data, format_hint = _input_data(args)
        start_ms, end_ms = _range(args)
        output_format = args.get("outputFormat") or operations.OUTPUT_WAV
        if not isinstance(output_format, str):
            raise InvalidArgumentsError("outputFormat must be a string")
        operations.normalize_output_kind(output_format)
        return lambda: operations.trim_audio_bytes(
            input_data, format_hint, start_ms, end_ms, output_format, **self._call_options()
        )

    def _get_waveform_bytes(self, args: Mapping) -> Callable[[], Any]:
        _require(
            args,
            ("inputData", "formatHint", "numberOfSamples"),
            "inputData, formatHint and numberOfSamples are required",
        )
        input_data, format_hint = _input_data(args)
        number_of_samples = _sample_count(args)
        return lambda: operations.get_waveform_bytes(
            input_data, format_hint, number_of_samples, **self._call_options()
        )
