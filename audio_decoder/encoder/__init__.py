"""
audio_decoder encoder subsystem.

- encode_m4a: PCM -> AAC in MP4, written to a path
- encode_m4a_bytes: same, returned as bytes
"""

from audio_decoder.encoder.m4a import encode_m4a, encode_m4a_bytes, iter_chunks

__all__ = [
    "encode_m4a",
    "encode_m4a_bytes",
    "iter_chunks",
]
