"""
Shared pytest fixtures for audio_decoder contract tests.
"""
import pytest

import audio_decoder.backend as backend_module
import audio_decoder.config as config_module
from audio_decoder.config import DecoderConfig
from audio_decoder.tests.contracts.test_doubles import (
    FakeBackend,
    make_pcm,
    write_wav_file,
)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """
    Install a fresh global config whose scratch directory is test-private.

    Returns:
        DecoderConfig: The installed configuration
    """
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    config = DecoderConfig(temp_dir=str(scratch))
    monkeypatch.setattr(config_module, "_CONFIG", config)
    monkeypatch.setattr(backend_module, "_BACKEND", None)
    return config


@pytest.fixture
def scratch_dir(isolated_config):
    """Directory that must be empty again after every bytes-variant call."""
    return isolated_config.temp_dir


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def mono_wav(tmp_path):
    """Path to a 3 second 8 kHz mono 16-bit sine WAV file."""
    return write_wav_file(tmp_path / "mono.wav", make_pcm(seconds=3.0))


@pytest.fixture
def stereo_wav(tmp_path):
    """Path to a 1 second 8 kHz stereo 16-bit sine WAV file."""
    return write_wav_file(tmp_path / "stereo.wav", make_pcm(seconds=1.0, channels=2))


@pytest.fixture
def corrupt_file(tmp_path):
    path = tmp_path / "corrupt.mp3"
    path.write_bytes(b"\xde\xad\xbe\xef" * 256)
    return str(path)
