"""
Contract tests for AudioDecoderService.

Covers: the method table, missing-argument messages, synchronous
validation, error code mapping per method, and asynchronous results.
"""

import os
from concurrent.futures import Future
from unittest.mock import patch

import pytest

from audio_decoder.backend.ffmpeg import FFmpegBackend
from audio_decoder.config import DecoderConfig
from audio_decoder.errors import BackendInitError, ProbeTimeoutError
from audio_decoder.service import (
    CONVERSION_ERROR,
    INFO_ERROR,
    INVALID_ARGUMENTS,
    TRIM_ERROR,
    WAVEFORM_ERROR,
    AudioDecoderService,
    MethodResult,
    ResultStatus,
)
from audio_decoder.tests.contracts.test_doubles import FAKE_M4A_MAGIC, FakeBackend


def _read(path) -> bytes:
    with open(path, "rb") as f:
        return f.read()


@pytest.fixture
def service(fake_backend):
    svc = AudioDecoderService(backend=fake_backend)
    yield svc
    svc.shutdown()


class TestMethodTable:

    def test_all_methods_registered(self, service):
        assert set(service.methods) == {
            "convertToWav", "convertToM4a", "getAudioInfo", "trimAudio", "getWaveform",
            "convertToWavBytes", "convertToM4aBytes", "getAudioInfoBytes",
            "trimAudioBytes", "getWaveformBytes",
        }

    def test_unknown_method_not_implemented(self, service):
        result = service.handle("transcodeToFlac", {})
        assert result.status is ResultStatus.NOT_IMPLEMENTED
        assert not result.ok


class TestArgumentValidation:
    """Invalid calls resolve immediately with INVALID_ARGUMENTS."""

    @pytest.mark.parametrize("method,args,message", [
        ("convertToWav", {"inputPath": "a.mp3"}, "inputPath and outputPath are required"),
        ("convertToM4a", {"outputPath": "b.m4a"}, "inputPath and outputPath are required"),
        ("getAudioInfo", {}, "path is required"),
        ("trimAudio", {"inputPath": "a", "outputPath": "b", "startMs": 0},
         "inputPath, outputPath, startMs and endMs are required"),
        ("getWaveform", {"path": "a.mp3"}, "path and numberOfSamples are required"),
        ("convertToWavBytes", {"inputData": b"x"}, "inputData and formatHint are required"),
        ("convertToM4aBytes", {"formatHint": "mp3"}, "inputData and formatHint are required"),
        ("getAudioInfoBytes", {}, "inputData and formatHint are required"),
        ("trimAudioBytes", {"inputData": b"x", "formatHint": "mp3", "endMs": 5},
         "inputData, formatHint, startMs and endMs are required"),
        ("getWaveformBytes", {"inputData": b"x", "formatHint": "mp3"},
         "inputData, formatHint and numberOfSamples are required"),
    ])
    def test_missing_argument_messages(self, service, fake_backend, method, args, message):
        result = service.handle(method, args)

        assert result == MethodResult.error(INVALID_ARGUMENTS, message)
        assert fake_backend.decode_calls == []

    @pytest.mark.parametrize("args", [None, "path=a.mp3", ["a.mp3"]])
    def test_arguments_must_be_a_map(self, service, args):
        result = service.handle("getAudioInfo", args)
        assert result == MethodResult.error(INVALID_ARGUMENTS, "Arguments map is required")

    def test_invalid_call_resolves_without_worker(self, service):
        future = service.submit("getWaveform", {"path": "a.mp3", "numberOfSamples": 0})
        assert future.done()
        assert future.result().code == INVALID_ARGUMENTS

    @pytest.mark.parametrize("method,args", [
        ("trimAudio", {"inputPath": "a", "outputPath": "b", "startMs": -5, "endMs": 100}),
        ("trimAudio", {"inputPath": "a", "outputPath": "b", "startMs": 200, "endMs": 100}),
        ("trimAudio", {"inputPath": "a", "outputPath": "b", "startMs": "0", "endMs": 100}),
        ("trimAudio", {"inputPath": "a", "outputPath": "b", "startMs": True, "endMs": 100}),
        ("getWaveform", {"path": "a", "numberOfSamples": -1}),
        ("convertToWav", {"inputPath": "a", "outputPath": "b", "bitDepth": 12}),
        ("convertToWav", {"inputPath": 5, "outputPath": "b"}),
        ("convertToWavBytes", {"inputData": "text", "formatHint": "mp3"}),
        ("convertToWavBytes", {"inputData": b"x", "formatHint": "../mp3"}),
        ("trimAudioBytes", {"inputData": b"x", "formatHint": "mp3", "startMs": 0,
                            "endMs": 10, "outputFormat": "flac"}),
    ])
    def test_malformed_arguments(self, service, fake_backend, method, args):
        result = service.handle(method, args)

        assert result.status is ResultStatus.ERROR
        assert result.code == INVALID_ARGUMENTS
        assert fake_backend.decode_calls == []

    def test_non_integer_optional_arguments_ignored(self, service, fake_backend, mono_wav, tmp_path):
        result = service.handle("convertToWav", {
            "inputPath": mono_wav,
            "outputPath": str(tmp_path / "out.wav"),
            "sampleRate": "44100",
        })
        assert result.ok
        assert fake_backend.decode_calls[-1]["sample_rate"] is None


class TestSuccessfulCalls:

    def test_convert_to_wav(self, service, mono_wav, tmp_path):
        output = str(tmp_path / "out.wav")
        result = service.handle("convertToWav", {"inputPath": mono_wav, "outputPath": output})

        assert result == MethodResult.success(output)
        assert _read(output).startswith(b"RIFF")

    def test_convert_to_m4a(self, service, mono_wav, tmp_path):
        output = str(tmp_path / "out.m4a")
        result = service.handle("convertToM4a", {"inputPath": mono_wav, "outputPath": output})

        assert result.value == output
        assert _read(output).startswith(FAKE_M4A_MAGIC)

    def test_get_audio_info_record(self, service, stereo_wav):
        result = service.handle("getAudioInfo", {"path": stereo_wav})
        assert result.value == {
            "durationMs": 1000,
            "sampleRate": 8000,
            "channels": 2,
            "bitRate": 256000,
            "format": "wav",
        }

    def test_trim_audio(self, service, mono_wav, tmp_path):
        output = str(tmp_path / "clip.m4a")
        result = service.handle("trimAudio", {
            "inputPath": mono_wav, "outputPath": output, "startMs": 0, "endMs": 1000,
        })
        assert result.value == output
        assert _read(output).startswith(FAKE_M4A_MAGIC)

    def test_get_waveform(self, service, mono_wav):
        result = service.handle("getWaveform", {"path": mono_wav, "numberOfSamples": 16})
        assert len(result.value) == 16

    def test_bytes_methods(self, service, mono_wav, scratch_dir):
        data = _read(mono_wav)

        wav = service.handle("convertToWavBytes", {"inputData": data, "formatHint": "wav"})
        m4a = service.handle("convertToM4aBytes", {"inputData": bytearray(data), "formatHint": "wav"})
        info = service.handle("getAudioInfoBytes", {"inputData": data, "formatHint": "wav"})
        trim = service.handle("trimAudioBytes", {
            "inputData": data, "formatHint": "wav", "startMs": 0, "endMs": 500,
        })
        envelope = service.handle("getWaveformBytes", {
            "inputData": data, "formatHint": "wav", "numberOfSamples": 8,
        })

        assert wav.value.startswith(b"RIFF")
        assert m4a.value.startswith(FAKE_M4A_MAGIC)
        assert info.value["format"] == "wav"
        assert trim.value.startswith(b"RIFF")
        assert len(envelope.value) == 8
        assert os.listdir(scratch_dir) == []

    def test_submit_returns_future(self, service, mono_wav):
        future = service.submit("getWaveform", {"path": mono_wav, "numberOfSamples": 4})
        assert isinstance(future, Future)
        assert future.result(timeout=10).ok

    def test_concurrent_calls_are_independent(self, service, mono_wav, stereo_wav):
        futures = [
            service.submit("getAudioInfo", {"path": path})
            for path in [mono_wav, stereo_wav] * 4
        ]
        channels = [f.result(timeout=10).value["channels"] for f in futures]
        assert channels == [1, 2] * 4


class TestErrorMapping:
    """Operation failures become (code, message) pairs per method."""

    @pytest.mark.parametrize("method,code", [
        ("convertToWav", CONVERSION_ERROR),
        ("convertToM4a", CONVERSION_ERROR),
        ("trimAudio", TRIM_ERROR),
    ])
    def test_corrupt_input(self, service, corrupt_file, tmp_path, method, code):
        result = service.handle(method, {
            "inputPath": corrupt_file, "outputPath": str(tmp_path / "out.wav"),
            "startMs": 0, "endMs": 1000,
        })
        assert result.status is ResultStatus.ERROR
        assert result.code == code
        assert result.message

    def test_waveform_error(self, service, corrupt_file):
        result = service.handle("getWaveform", {"path": corrupt_file, "numberOfSamples": 10})
        assert result.code == WAVEFORM_ERROR

    def test_missing_file_info_error(self, service, tmp_path):
        result = service.handle("getAudioInfo", {"path": str(tmp_path / "missing.mp3")})
        assert result.code == INFO_ERROR
        assert "does not exist" in result.message

    def test_discovery_timeout_info_error(self, stereo_wav):
        with AudioDecoderService(backend=FakeBackend(discover_error=ProbeTimeoutError("took too long"))) as svc:
            result = svc.handle("getAudioInfo", {"path": stereo_wav})
        assert result == MethodResult.error(INFO_ERROR, "took too long")

    def test_empty_trim_range(self, service, mono_wav, tmp_path):
        result = service.handle("trimAudio", {
            "inputPath": mono_wav, "outputPath": str(tmp_path / "clip.wav"),
            "startMs": 90_000, "endMs": 91_000,
        })
        assert result.code == TRIM_ERROR

    def test_backend_init_failure(self, mono_wav, tmp_path):
        """A backend that cannot start is reported, not raised."""
        with patch.object(FFmpegBackend, "initialize", side_effect=BackendInitError("ffmpeg missing")):
            with AudioDecoderService() as svc:
                result = svc.handle("convertToWav", {
                    "inputPath": mono_wav, "outputPath": str(tmp_path / "out.wav"),
                })
        assert result == MethodResult.error(CONVERSION_ERROR, "ffmpeg missing")

    def test_unexpected_exception_reported(self, mono_wav):
        with patch("audio_decoder.operations.get_waveform", side_effect=RuntimeError("kaboom")):
            with AudioDecoderService(backend=FakeBackend()) as svc:
                result = svc.handle("getWaveform", {"path": mono_wav, "numberOfSamples": 4})
        assert result.code == WAVEFORM_ERROR
        assert "kaboom" in result.message


class TestLifecycle:

    def test_submit_after_shutdown(self, fake_backend, mono_wav):
        """Calls after shutdown resolve to an error instead of raising."""
        svc = AudioDecoderService(backend=fake_backend)
        svc.shutdown()

        future = svc.submit("getAudioInfo", {"path": mono_wav})

        assert future.done()
        assert future.result() == MethodResult.error(INFO_ERROR, "AudioDecoderService is shut down")
        assert fake_backend.discover_calls == []


class TestServiceConfig:
    """The service's own config reaches every operation it runs."""

    @pytest.fixture
    def own_dir(self, tmp_path):
        path = tmp_path / "own"
        path.mkdir()
        return str(path)

    def test_discovery_timeout_from_service_config(self, fake_backend, stereo_wav):
        """getAudioInfo bounds discovery by the service's probe_timeout_sec."""
        config = DecoderConfig(probe_timeout_sec=1.0)
        with AudioDecoderService(backend=fake_backend, config=config) as svc:
            result = svc.handle("getAudioInfo", {"path": stereo_wav})

        assert result.ok
        assert fake_backend.discover_calls[-1][1] == 1.0

    def test_scratch_input_in_service_temp_dir(self, fake_backend, mono_wav, own_dir, scratch_dir):
        """Bytes variants materialize input under the service's temp_dir."""
        config = DecoderConfig(temp_dir=own_dir)
        with AudioDecoderService(backend=fake_backend, config=config) as svc:
            result = svc.handle("convertToWavBytes", {"inputData": _read(mono_wav), "formatHint": "wav"})

        assert result.ok
        assert os.path.dirname(fake_backend.decode_calls[-1]["location"]) == own_dir
        assert os.listdir(own_dir) == []
        assert os.listdir(scratch_dir) == []

    def test_scratch_output_and_bitrate_from_service_config(self, fake_backend, mono_wav, own_dir):
        """convertToM4aBytes encodes into temp_dir at the configured AAC bitrate."""
        config = DecoderConfig(temp_dir=own_dir, aac_bitrate="96k")
        with AudioDecoderService(backend=fake_backend, config=config) as svc:
            result = svc.handle("convertToM4aBytes", {"inputData": _read(mono_wav), "formatHint": "wav"})

        assert result.ok
        assert result.value.startswith(FAKE_M4A_MAGIC)
        encode_call = fake_backend.encode_calls[-1]
        assert encode_call["bitrate_bps"] == 96000
        assert os.path.dirname(encode_call["output_path"]) == own_dir
        assert os.listdir(own_dir) == []

    def test_backend_built_from_service_config(self):
        """Without an injected backend, the service builds one from its config once."""
        config = DecoderConfig(ffmpeg_path="/opt/ffmpeg/bin/ffmpeg", ffprobe_path="/opt/ffmpeg/bin/ffprobe")
        with patch.object(FFmpegBackend, "initialize") as initialize:
            with AudioDecoderService(config=config) as svc:
                first = svc._get_backend()
                second = svc._get_backend()

        assert isinstance(first, FFmpegBackend)
        assert first is second
        assert first.config is config
        initialize.assert_called_once_with()
