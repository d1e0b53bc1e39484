#!/usr/bin/env python3
"""
audio_decoder command line entry point.

    python3 -m audio_decoder getAudioInfo --arg path=song.mp3
    python3 -m audio_decoder trimAudioBytes --input-file in.flac \\
        --arg formatHint=flac --arg startMs=1000 --arg endMs=2000 \\
        --output-bytes clip.wav

Results are printed as JSON. Byte results are written to --output-bytes.
"""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from audio_decoder.config import load_config
from audio_decoder.logging_config import configure_logging
from audio_decoder.service import AudioDecoderService, MethodResult, ResultStatus

logger = logging.getLogger("audio_decoder.cli")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NOT_IMPLEMENTED = 2


def _parse_value(raw: str) -> Any:
    try:
        return int(raw)
    except ValueError:
        return raw


def parse_arguments(pairs: List[str]) -> Dict[str, Any]:
    """Turn ["key=value", ...] into a dict, with integer-looking values as ints."""
    args: Dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid --arg {pair!r} (expected key=value)")
        args[key] = _parse_value(value)
    return args


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="audio_decoder",
        description="Convert, inspect, trim and summarize audio files.",
    )
    parser.add_argument("method", help="Method name, e.g. convertToWav or getWaveformBytes")
    parser.add_argument(
        "--arg",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Method argument (repeatable)",
    )
    parser.add_argument(
        "--input-file",
        metavar="PATH",
        help="Read this file into the inputData argument",
    )
    parser.add_argument(
        "--output-bytes",
        metavar="PATH",
        help="Write a byte result to this file",
    )
    return parser


def render(result: MethodResult, output_bytes: Optional[str]) -> Dict[str, Any]:
    """JSON-ready view of a result; byte values are written to output_bytes."""
    if result.status is ResultStatus.ERROR:
        return {"status": result.status.value, "code": result.code, "message": result.message}
    if result.status is ResultStatus.NOT_IMPLEMENTED:
        return {"status": result.status.value}

    value = result.value
    if isinstance(value, bytes):
        if output_bytes:
            with open(output_bytes, "wb") as f:
                f.write(value)
            value = {"path": output_bytes, "size": len(value)}
        else:
            value = {"size": len(value)}
    return {"status": result.status.value, "value": value}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    options = parser.parse_args(argv)

    try:
        config = load_config()
    except (ValueError, FileNotFoundError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_ERROR

    configure_logging(config.log_level, config.log_file)

    try:
        args = parse_arguments(options.arg)
    except ValueError as e:
        parser.error(str(e))

    if options.input_file:
        try:
            with open(options.input_file, "rb") as f:
                args["inputData"] = f.read()
        except OSError as e:
            logger.error(f"Cannot read input file {options.input_file}: {e}")
            return EXIT_ERROR

    with AudioDecoderService(config=config) as service:
        result = service.handle(options.method, args)

    print(json.dumps(render(result, options.output_bytes), indent=2))

    if result.status is ResultStatus.NOT_IMPLEMENTED:
        return EXIT_NOT_IMPLEMENTED
    return EXIT_OK if result.ok else EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
