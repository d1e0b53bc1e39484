"""
Logging setup for audio_decoder entry points.

Library modules only create module-level loggers; handlers are installed
here, once, by whoever owns the process (the CLI or the host application).
"""

import logging
import logging.handlers
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Rotate at 10MB, keep 5 backups (decoder.log, decoder.log.1, ..., decoder.log.5)
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the audio_decoder logger hierarchy.

    Installs a console handler and, if log_file is given, a rotating file
    handler. Safe to call more than once; existing handlers installed by
    this function are replaced rather than duplicated.

    Args:
        level: Log level name (e.g. "INFO", "DEBUG")
        log_file: Optional path to a log file

    Returns:
        The configured "audio_decoder" logger
    """
    root = logging.getLogger("audio_decoder")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(root.handlers):
        if getattr(handler, "_audio_decoder_handler", False):
            root.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler._audio_decoder_handler = True
    root.addHandler(console_handler)

    if log_file:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        file_handler._audio_decoder_handler = True
        root.addHandler(file_handler)

    root.propagate = False
    return root
