"""
PCM core: decode engine, WAV serializer and waveform summarizer.
"""

from audio_decoder.pcm.decode import decode, resolve_source
from audio_decoder.pcm.wav import read_wav, read_wav_header, write_wav
from audio_decoder.pcm.waveform import summarize

__all__ = [
    "decode",
    "resolve_source",
    "read_wav",
    "read_wav_header",
    "write_wav",
    "summarize",
]
