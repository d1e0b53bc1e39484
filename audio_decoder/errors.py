"""
Exception hierarchy for audio_decoder.

Every failure an operation can surface derives from AudioDecoderError so the
method service can map it onto a stable (code, message) pair at the
operation boundary.
"""


class AudioDecoderError(Exception):
    """Base class for all audio_decoder failures."""


class InvalidArgumentsError(AudioDecoderError):
    """Caller contract violation (missing or malformed arguments)."""


class BackendInitError(AudioDecoderError):
    """The native decode/encode backend could not be started."""


class DecodeError(AudioDecoderError):
    """Base class for decode pipeline failures."""


class InvalidSourceError(DecodeError):
    """The source path or URI could not be resolved."""


class DecodePipelineError(DecodeError):
    """The decode pipeline failed (bad format, unsupported codec, corrupt file)."""


class SerializeError(AudioDecoderError):
    """WAV serialization or parsing failed."""


class EmptySourceError(SerializeError):
    """A PCM buffer with no data was handed to a serializer or encoder."""


class EncodeError(AudioDecoderError):
    """The AAC/MP4 encode pipeline failed."""


class ProbeError(AudioDecoderError):
    """Base class for metadata discovery failures."""


class ProbeTimeoutError(ProbeError):
    """Discovery did not finish within its time bound."""


class DiscoveryError(ProbeError):
    """Discovery ran but could not read the source."""


class EmptyResultError(AudioDecoderError):
    """A valid decode produced zero samples."""


class EmptyRangeError(EmptyResultError):
    """A trim range produced zero samples."""


class ArtifactIOError(AudioDecoderError):
    """Filesystem failure on a scratch or output artifact."""
