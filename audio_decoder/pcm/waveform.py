"""
Waveform envelope for visualization.

Reduces a PCM buffer to a fixed number of normalized RMS values. The buffer is
read as a flat stream of native-endian 16-bit samples; interleaved channels
are not separated, so a stereo buffer produces a channel-mixed envelope.
"""

import logging
from typing import List

import numpy as np

from audio_decoder.errors import InvalidArgumentsError
from audio_decoder.models import PcmBuffer, WaveformEnvelope

logger = logging.getLogger(__name__)


def window_bounds(total_samples: int, number_of_samples: int) -> List[tuple]:
    """
    Compute the [start, end) sample range of every window that is kept.

    Window i starts at i * total // n and spans max(1, total // n) samples,
    clipped to the buffer. Windows starting at or past the end, or repeating
    the previous window's start (only possible when n > total), are omitted.
    """
    span = max(1, total_samples // number_of_samples)
    bounds = []
    previous_start = -1
    for i in range(number_of_samples):
        start = i * total_samples // number_of_samples
        if start >= total_samples:
            break
        if start == previous_start:
            continue
        bounds.append((start, min(start + span, total_samples)))
        previous_start = start
    return bounds


def summarize(pcm: PcmBuffer, number_of_samples: int) -> WaveformEnvelope:
    """
    Reduce pcm to a normalized RMS envelope.

    Args:
        pcm: Decoded PCM buffer (16-bit samples expected)
        number_of_samples: Envelope length (must be > 0)

    Returns:
        List of exactly number_of_samples floats in [0.0, 1.0]. The loudest
        window maps to 1.0; silence yields all zeros.

    Raises:
        InvalidArgumentsError: If number_of_samples <= 0
    """
    if number_of_samples <= 0:
        raise InvalidArgumentsError(
            f"numberOfSamples must be > 0 (got {number_of_samples})"
        )

    if pcm.is_empty:
        return [0.0] * number_of_samples

    usable = len(pcm.data) - len(pcm.data) % 2
    samples = np.frombuffer(pcm.data[:usable], dtype=np.int16).astype(np.float64)
    total_samples = samples.shape[0]
    if total_samples == 0:
        return [0.0] * number_of_samples

    squares = samples * samples
    rms = np.array(
        [np.sqrt(squares[start:end].sum() / (end - start))
         for start, end in window_bounds(total_samples, number_of_samples)],
        dtype=np.float64,
    )

    max_rms = rms.max() if rms.size else 0.0
    if max_rms > 0:
        normalized = rms / max_rms
    else:
        normalized = np.zeros_like(rms)

    envelope = normalized.tolist()
    envelope.extend([0.0] * (number_of_samples - len(envelope)))

    logger.debug(
        f"[WAVEFORM] {total_samples} samples -> {len(rms)} windows "
        f"(requested {number_of_samples}, max_rms={max_rms:.1f})"
    )
    return envelope
