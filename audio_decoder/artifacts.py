"""
Temp-artifact bridge for byte-buffer call variants.

Scratch files are owned by the with-block that created them and are removed
on every exit path. Output files are replaced atomically from the caller's
point of view: the destination is deleted before writing and again if the
write fails, so a failed operation never leaves a valid-looking file behind.
"""

import logging
import os
import re
import tempfile
from contextlib import contextmanager
from typing import Iterator, Optional

from audio_decoder.errors import ArtifactIOError, InvalidArgumentsError

logger = logging.getLogger(__name__)

SCRATCH_PREFIX = "audio_decoder_"

_EXTENSION_RE = re.compile(r"^[A-Za-z0-9]{1,16}$")


def normalize_extension(format_hint: str) -> str:
    """
    Turn a format hint ("mp3", ".MP3") into a safe file extension.

    Raises:
        InvalidArgumentsError: If the hint is not a plain alphanumeric extension
    """
    extension = (format_hint or "").strip().lstrip(".").lower()
    if not _EXTENSION_RE.match(extension):
        raise InvalidArgumentsError(f"Invalid formatHint: {format_hint!r}")
    return extension


def remove_quietly(path: Optional[str]) -> None:
    """Delete path if it exists, logging (not raising) on failure."""
    if not path:
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"[ARTIFACT] Could not remove {path}: {e}")


def _make_scratch(extension: str, directory: Optional[str]) -> tuple:
    try:
        return tempfile.mkstemp(prefix=SCRATCH_PREFIX, suffix=f".{extension}", dir=directory)
    except OSError as e:
        raise ArtifactIOError(f"Failed to create temp file: {e}")


@contextmanager
def scratch_input(data: bytes, format_hint: str, directory: Optional[str] = None) -> Iterator[str]:
    """
    Materialize data as a scratch file named with the hinted extension.

    Yields:
        str: Path of the scratch file (removed on exit)
    """
    extension = normalize_extension(format_hint)
    fd, path = _make_scratch(extension, directory)
    try:
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
        except OSError as e:
            raise ArtifactIOError(f"Failed to write temp input {path}: {e}")
        logger.debug(f"[ARTIFACT] Wrote {len(data)} bytes to {path}")
        yield path
    finally:
        remove_quietly(path)


@contextmanager
def scratch_output(extension: str, directory: Optional[str] = None) -> Iterator[str]:
    """
    Reserve a scratch output path with the given extension.

    Yields:
        str: Path of an empty scratch file (removed on exit)
    """
    extension = normalize_extension(extension)
    fd, path = _make_scratch(extension, directory)
    os.close(fd)
    try:
        yield path
    finally:
        remove_quietly(path)


def read_and_delete(path: str) -> bytes:
    """
    Read a scratch output file and remove it.

    Raises:
        ArtifactIOError: If the file cannot be read
    """
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise ArtifactIOError(f"Cannot read output file {path}: {e}")
    finally:
        remove_quietly(path)
    return data


def write_output(path: str, data: bytes) -> str:
    """
    Write data to path, replacing any existing file.

    Raises:
        ArtifactIOError: If the file cannot be written (nothing is left behind)
    """
    remove_quietly(path)
    try:
        with open(path, "wb") as f:
            f.write(data)
    except OSError as e:
        remove_quietly(path)
        raise ArtifactIOError(f"Cannot open output file for writing: {path}: {e}")
    logger.debug(f"[ARTIFACT] Wrote {len(data)} bytes to {path}")
    return path
