"""
audio_decoder: convert, inspect, trim and summarize audio through ffmpeg.

Decoded audio is buffered as interleaved PCM, serialized as WAV or encoded
as AAC in MP4, and reduced to normalized RMS envelopes for waveform display.
"""

from audio_decoder.errors import AudioDecoderError
from audio_decoder.models import AudioDescriptor, AudioFormat, DecodeRequest, PcmBuffer
from audio_decoder.operations import (
    convert_to_m4a,
    convert_to_m4a_bytes,
    convert_to_wav,
    convert_to_wav_bytes,
    get_audio_info,
    get_audio_info_bytes,
    get_waveform,
    get_waveform_bytes,
    trim,
    trim_audio,
    trim_audio_bytes,
)
from audio_decoder.service import AudioDecoderService, MethodResult

__version__ = "0.1.0"

__all__ = [
    "AudioDecoderError",
    "AudioDecoderService",
    "AudioDescriptor",
    "AudioFormat",
    "DecodeRequest",
    "MethodResult",
    "PcmBuffer",
    "convert_to_m4a",
    "convert_to_m4a_bytes",
    "convert_to_wav",
    "convert_to_wav_bytes",
    "get_audio_info",
    "get_audio_info_bytes",
    "get_waveform",
    "get_waveform_bytes",
    "trim",
    "trim_audio",
    "trim_audio_bytes",
]
