#!/usr/bin/env python3
"""
Command-line interface for the tick_candles package.

Reads 'id,price,timestamp' records (stdin by default) until a blank line,
infers candle intervals per instrument and writes the candles as CSV
(stdout by default). Diagnostics go to stderr so stdout stays clean.
"""

from __future__ import annotations

import argparse
import io
import sys
from typing import List, Optional

from .tick_candles import (
    Config,
    InputFormatError,
    build_candles,
    read_observations,
    write_candles,
)

# Reuse color/style constants from tick_candles.py
from .tick_candles import (
    Style,
    INFO,
    WARNING,
    ERROR,
    SUCCESS,
    COLOR_VAR,
    COLOR_TYPE,
    COLOR_FILE,
    ENV_VERBOSE_KEY,
)

# -----------------------------
# Constants
# -----------------------------
STDIO_LABEL: str = "-"
SEP_BULLET: str = " · "
EXIT_OK: int = 0
EXIT_INPUT_ERROR: int = 2
EXIT_OUTPUT_ERROR: int = 3
EXIT_INTERRUPTED: int = 130
# Undecodable input bytes survive into ids and are written back unchanged.
STREAM_ERRORS: str = "surrogateescape"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tick-candles",
        description=(
            f"{INFO} Tick Candles — OHLC candles over inferred intervals {Style.RESET_ALL}\n\n"
            "Reads 'id,price,RFC3339-timestamp' lines until an empty line, infers which\n"
            "candle durations each instrument's ticks support, and writes one CSV row per\n"
            "candle: id,open,high,low,close,bucket_start,interval\n"
        ),
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument(
        "-i", "--input",
        dest="input_path",
        default=None,
        help=f"Input file (default: stdin; '{STDIO_LABEL}' also means stdin)",
    )
    parser.add_argument(
        "-o", "--output",
        dest="output_path",
        default=None,
        help=f"Output file (default: stdout; '{STDIO_LABEL}' also means stdout)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help=f"Verbose diagnostics on stderr (also via the {ENV_VERBOSE_KEY} environment variable)",
    )
    return parser.parse_args(argv)


def _normalize_path(path: Optional[str]) -> Optional[str]:
    return None if path in (None, "", STDIO_LABEL) else path


def _one_line_run_summary(cfg: Config) -> str:
    """
    Single colored one-liner with the run parameters, e.g.
      [INFO] input=stdin · output=candles.csv · verbose=True
    """
    parts = [
        f"{COLOR_VAR}input{Style.RESET_ALL}={COLOR_FILE}{cfg.input_path or 'stdin'}{Style.RESET_ALL}",
        f"{COLOR_VAR}output{Style.RESET_ALL}={COLOR_FILE}{cfg.output_path or 'stdout'}{Style.RESET_ALL}",
        f"{COLOR_VAR}verbose{Style.RESET_ALL}={COLOR_TYPE}{cfg.verbose}{Style.RESET_ALL}",
    ]
    return f"{INFO} " + SEP_BULLET.join(parts) + f"{Style.RESET_ALL}"


def _passthrough(stream):
    if isinstance(stream, io.TextIOWrapper):
        stream.reconfigure(errors=STREAM_ERRORS)
    return stream


def _read_input(cfg: Config):
    if cfg.input_path is None:
        return read_observations(_passthrough(sys.stdin))
    with open(cfg.input_path, "r", encoding="utf-8", errors=STREAM_ERRORS, newline="\n") as f:
        return read_observations(f)


def _write_output(cfg: Config, candles) -> int:
    if cfg.output_path is None:
        return write_candles(candles, _passthrough(sys.stdout))
    with open(cfg.output_path, "w", encoding="utf-8", errors=STREAM_ERRORS, newline="") as f:
        return write_candles(candles, f)


def run_cli(cfg: Config) -> int:
    """
    Reads, aggregates and writes. Returns a process exit code.
    """
    if cfg.verbose:
        print(_one_line_run_summary(cfg), file=sys.stderr)

    try:
        observations = _read_input(cfg)
    except InputFormatError as exc:
        sys.stderr.write(f"{ERROR} {exc}{Style.RESET_ALL}\n")
        return EXIT_INPUT_ERROR
    except (OSError, UnicodeDecodeError) as exc:
        sys.stderr.write(f"{ERROR} Failed to read input: {exc}{Style.RESET_ALL}\n")
        return EXIT_INPUT_ERROR

    if cfg.verbose:
        print(f"{INFO} Read {len(observations)} observation(s).", file=sys.stderr)

    candles = build_candles(observations, verbose=cfg.verbose)

    try:
        written = _write_output(cfg, candles)
    except (OSError, UnicodeEncodeError) as exc:
        sys.stderr.write(f"{ERROR} Failed to write output: {exc}{Style.RESET_ALL}\n")
        return EXIT_OUTPUT_ERROR

    if cfg.verbose:
        if written:
            print(f"{SUCCESS} Wrote {written} candle(s).", file=sys.stderr)
        else:
            print(f"{WARNING} No candles produced (need at least two bucket transitions "
                  f"per instrument).{Style.RESET_ALL}", file=sys.stderr)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    cfg = Config(
        input_path=_normalize_path(args.input_path),
        output_path=_normalize_path(args.output_path),
        verbose=args.verbose,
    )

    try:
        exit_code = run_cli(cfg)
    except KeyboardInterrupt:
        sys.stderr.write(f"{WARNING} Interrupted by user.{Style.RESET_ALL}\n")
        exit_code = EXIT_INTERRUPTED
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
