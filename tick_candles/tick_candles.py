#!/usr/bin/env python3

import csv
import math
import os
import re
import sys
import numpy as np
from datetime import datetime, timezone, timedelta, tzinfo
from dataclasses import dataclass
from typing import List, Tuple, Dict, Iterable, Optional, Sequence, Set, TextIO, Union

# ----------------------------------------------------------------------
# 1) COLOR & LOGGING SETUP
# ----------------------------------------------------------------------
from colorama import AnsiToWin32, Fore, Style


def color_stream(stream):
    """
    Wrap a diagnostics stream with colorama: colour codes are stripped when the
    stream is not a terminal and every write is followed by a reset.
    """
    return AnsiToWin32(stream, autoreset=True).stream


# Only stderr is wrapped; stdout carries CSV rows and is left untouched.
sys.stderr = color_stream(sys.stderr)

INFO = Fore.GREEN + "[INFO]" + Style.RESET_ALL
WARNING = Fore.YELLOW + "[WARNING]" + Style.RESET_ALL
ERROR = Fore.RED + "[ERROR]" + Style.RESET_ALL
SUCCESS = Fore.GREEN + "[SUCCESS]" + Style.RESET_ALL
DEBUG = Fore.MAGENTA + "[DEBUG]" + Style.RESET_ALL

COLOR_VAR = Fore.CYAN
COLOR_TYPE = Fore.YELLOW
COLOR_FILE = Fore.YELLOW

# Environment key that turns on verbose diagnostics
ENV_VERBOSE_KEY: str = "TICK_CANDLES_VERBOSE"

# ----------------------------------------------------------------------
# 2) DURATION CATALOG
# ----------------------------------------------------------------------
# Candidate base durations (seconds) probed by infer_intervals, in order.
BASE_DURATIONS: Tuple[int, ...] = (60, 120, 300)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ONE_SECOND = timedelta(seconds=1)

RFC3339_PATTERN = re.compile(
    r"([0-9]{4})-([0-9]{2})-([0-9]{2})T([0-9]{2}):([0-9]{2}):([0-9]{2})"
    r"(?:\.([0-9]+))?"
    r"(?:(Z)|([+-])([0-9]{2}):([0-9]{2}))"
)
PRICE_PATTERN = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


class InputFormatError(ValueError):
    """
    A record that cannot be turned into an Observation.
    Carries the 1-based line number (when known) and the raw line.
    """
    def __init__(self, message: str, line_no: Optional[int] = None, line: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.line_no = line_no
        self.line = line

    def __str__(self) -> str:
        if self.line_no is None:
            return self.message
        return f"line {self.line_no}: {self.message}"


def to_epoch_seconds(ts: Union[datetime, int]) -> int:
    """Whole seconds since the Unix epoch, floored. Ints pass through."""
    if isinstance(ts, datetime):
        if ts.tzinfo is None:
            raise ValueError(f"Timestamp has no UTC offset: {ts!r}")
        return (ts - EPOCH) // ONE_SECOND
    return int(ts)


def truncate_seconds(seconds, duration: int):
    """Largest multiple of `duration` not exceeding `seconds` (scalar or array)."""
    return (seconds // duration) * duration


@dataclass(frozen=True)
class Observation:
    """
    One parsed input record.
    """
    instrument_id: str
    price: float
    timestamp: datetime

    @property
    def epoch_seconds(self) -> int:
        return to_epoch_seconds(self.timestamp)


@dataclass(frozen=True)
class Candle:
    """
    Open/high/low/close over [bucket_start, bucket_start + interval).
    `interval` is in seconds.
    """
    instrument_id: str
    open: float
    high: float
    low: float
    close: float
    bucket_start: datetime
    interval: int

    @property
    def bucket_end(self) -> datetime:
        return self.bucket_start + timedelta(seconds=self.interval)

    def sort_key(self) -> Tuple[str, int, int]:
        return (self.instrument_id, self.interval, to_epoch_seconds(self.bucket_start))

    def to_row(self) -> List[str]:
        return [
            self.instrument_id,
            f"{self.open:.2f}",
            f"{self.high:.2f}",
            f"{self.low:.2f}",
            f"{self.close:.2f}",
            format_timestamp(self.bucket_start),
            format_interval(self.interval),
        ]

    def __str__(self) -> str:
        return (f"{format_interval(self.interval)} :: {self.instrument_id} "
                f"{format_timestamp(self.bucket_start)} :: "
                f"o={self.open},h={self.high},l={self.low},c={self.close}")


# ----------------------------------------------------------------------
# 3) INTERVAL INFERENCE
# ----------------------------------------------------------------------
def infer_intervals(
    timestamps: Sequence[Union[datetime, int]],
    base_durations: Sequence[int] = BASE_DURATIONS,
) -> Set[int]:
    """
    Work out which candle durations (seconds) the timestamps actually support.

    For every base duration, each adjacent pair (in the order given) is
    truncated to that duration. The gap between the two truncated instants is
    the witnessed duration; a zero gap falls back to the base duration itself.
    Both truncated instants are recorded under the witnessed duration, and a
    duration qualifies once it has at least two distinct witnesses.

    A pair that steps backwards in time witnesses the absolute gap, sharing
    witnesses with forward pairs of the same size. Unsorted input can
    therefore qualify durations that a strictly forward reading would not.
    """
    seconds = np.asarray([to_epoch_seconds(t) for t in timestamps], dtype=np.int64)
    if len(seconds) < 2:
        return set()

    witnesses: Dict[int, Set[int]] = {}

    for dur in base_durations:
        if dur <= 0:
            raise ValueError(f"Base duration must be positive, got {dur}")
        truncated = truncate_seconds(seconds, dur)
        gaps = np.abs(np.diff(truncated))
        gaps[gaps == 0] = dur

        for gap, t1, t2 in zip(gaps.tolist(), truncated[:-1].tolist(), truncated[1:].tolist()):
            if gap not in witnesses:
                witnesses[gap] = set()
            witnesses[gap].add(t1)
            witnesses[gap].add(t2)

    return {dur for dur, instants in witnesses.items() if len(instants) >= 2}


# ----------------------------------------------------------------------
# 4) CANDLE AGGREGATION
# ----------------------------------------------------------------------
def _bucket_ohlc(
    seconds: np.ndarray, prices: np.ndarray, start: int, end: int
) -> Optional[Tuple[float, float, float, float]]:
    """
    (open, high, low, close) of the prices whose second falls in [start, end),
    or None when nothing falls inside. Open/close follow array (input) order.
    """
    members = prices[(seconds >= start) & (seconds < end)]
    if members.size == 0:
        return None
    return float(members[0]), float(members.max()), float(members.min()), float(members[-1])


def aggregate(instrument_id: str, observations: Sequence[Observation], interval: int) -> List[Candle]:
    """
    Build one candle per occupied `interval`-second bucket.

    Buckets come out in the order their first observation appears in the
    input. Open and close are the first and last prices in input order, which
    is not necessarily chronological when the input is unsorted.
    """
    if interval <= 0:
        raise ValueError(f"Interval must be positive, got {interval}")
    if not observations:
        return []

    seconds = np.asarray([o.epoch_seconds for o in observations], dtype=np.int64)
    prices = np.asarray([o.price for o in observations], dtype=np.float64)
    starts = truncate_seconds(seconds, interval)

    # bucket start -> offset of the observation that opened it
    bucket_zones: Dict[int, tzinfo] = {}
    for obs, start in zip(observations, starts.tolist()):
        if start not in bucket_zones:
            bucket_zones[start] = obs.timestamp.tzinfo

    candles: List[Candle] = []
    for start, zone in bucket_zones.items():
        ohlc = _bucket_ohlc(seconds, prices, start, start + interval)
        if ohlc is None:
            raise RuntimeError(
                f"Empty bucket for {instrument_id} at {start} (interval={interval}s)? (bug)"
            )
        o, h, l, c = ohlc
        candles.append(Candle(
            instrument_id=instrument_id,
            open=o,
            high=h,
            low=l,
            close=c,
            bucket_start=datetime.fromtimestamp(start, tz=zone),
            interval=interval,
        ))
    return candles


# ----------------------------------------------------------------------
# 5) COLLECTION & ORDERING
# ----------------------------------------------------------------------
def group_by_instrument(observations: Iterable[Observation]) -> Dict[str, List[Observation]]:
    groups: Dict[str, List[Observation]] = {}
    for obs in observations:
        if obs.instrument_id not in groups:
            groups[obs.instrument_id] = []
        groups[obs.instrument_id].append(obs)
    return groups


def build_candles(
    observations: Iterable[Observation],
    base_durations: Sequence[int] = BASE_DURATIONS,
    verbose: bool = False,
) -> List[Candle]:
    """
    Group observations by instrument, infer each instrument's intervals and
    aggregate every (instrument, interval) pair.

    The result is sorted by (instrument_id, interval, bucket_start); that sort
    is the only ordering guarantee.
    """
    groups = group_by_instrument(observations)
    result: List[Candle] = []

    for instrument_id, group in groups.items():
        intervals = infer_intervals([o.epoch_seconds for o in group], base_durations)
        if not intervals:
            if verbose:
                print(f"{WARNING} {instrument_id}: no intervals inferred from "
                      f"{len(group)} observation(s); no candles.", file=sys.stderr)
            continue
        if verbose:
            labels = ", ".join(format_interval(i) for i in sorted(intervals))
            print(f"{INFO} {COLOR_VAR}{instrument_id}{Style.RESET_ALL}: "
                  f"{len(group)} observation(s), intervals=[{COLOR_TYPE}{labels}{Style.RESET_ALL}]",
                  file=sys.stderr)
        for interval in intervals:
            result.extend(aggregate(instrument_id, group, interval))

    result.sort(key=Candle.sort_key)

    if verbose:
        for candle in result:
            print(f"{DEBUG} {candle}", file=sys.stderr)
    return result


# ----------------------------------------------------------------------
# 6) INPUT PARSING
# ----------------------------------------------------------------------
def parse_rfc3339(value: str) -> datetime:
    """
    Strict RFC 3339: 'YYYY-MM-DDTHH:MM:SS[.frac]' followed by 'Z' or '+HH:MM'/'-HH:MM'.
    """
    match = RFC3339_PATTERN.fullmatch(value)
    if not match:
        raise ValueError(f"Invalid RFC 3339 timestamp: {value!r}")
    year, month, day, hour, minute, second, frac, zulu, sign, off_h, off_m = match.groups()

    if zulu:
        zone = timezone.utc
    else:
        if int(off_h) > 23 or int(off_m) > 59:
            raise ValueError(f"Invalid UTC offset in timestamp: {value!r}")
        offset = timedelta(hours=int(off_h), minutes=int(off_m))
        zone = timezone(-offset if sign == "-" else offset)

    micros = int((frac or "0")[:6].ljust(6, "0"))
    try:
        dt = datetime(int(year), int(month), int(day), int(hour), int(minute), int(second),
                      micros, tzinfo=zone)
        # the UTC instant must stay within years 1..9999 as well
        dt.astimezone(timezone.utc)
    except (ValueError, OverflowError) as exc:
        raise ValueError(f"Invalid RFC 3339 timestamp: {value!r} ({exc})") from exc
    return dt


def parse_price(value: str) -> float:
    if not PRICE_PATTERN.fullmatch(value):
        raise ValueError(f"Invalid price: {value!r}")
    price = float(value)
    if not math.isfinite(price):
        raise ValueError(f"Price out of range: {value!r}")
    return price


def parse_line(line: str, line_no: Optional[int] = None) -> Observation:
    """
    'id,price,timestamp' -> Observation. Fields past the third are ignored.
    """
    parts = line.split(",")
    if len(parts) < 3:
        raise InputFormatError(f"bad user input: {line}", line_no=line_no, line=line)
    try:
        price = parse_price(parts[1])
        timestamp = parse_rfc3339(parts[2])
    except ValueError as exc:
        raise InputFormatError(str(exc), line_no=line_no, line=line) from exc
    return Observation(instrument_id=parts[0], price=price, timestamp=timestamp)


def read_observations(stream: Iterable[str]) -> List[Observation]:
    """
    Parse lines until the first empty line (or EOF).
    Any malformed record raises InputFormatError; nothing is returned partially.
    """
    observations: List[Observation] = []
    for line_no, raw in enumerate(stream, start=1):
        line = raw[:-1] if raw.endswith("\n") else raw
        if line.endswith("\r"):
            line = line[:-1]
        if line == "":
            break
        observations.append(parse_line(line, line_no))
    return observations


# ----------------------------------------------------------------------
# 7) OUTPUT FORMATTING
# ----------------------------------------------------------------------
def _duration_text(seconds: int) -> str:
    """Whole-second duration rendered like '1h5m0s', '2m0s', '45s'."""
    if seconds == 0:
        return "0s"
    sign = "-" if seconds < 0 else ""
    hours, rem = divmod(abs(seconds), 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{sign}{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{sign}{minutes}m{secs}s"
    return f"{sign}{secs}s"


def format_interval(seconds: int) -> str:
    """
    Compact interval label: the full duration text cut right after the first
    'm' (so '2m0s' -> '2m', '1m30s' -> '1m', '1h0m0s' -> '1h0m').
    Labels without a minute marker are returned as-is.
    """
    text = _duration_text(seconds)
    idx = text.find("m")
    if idx == -1:
        return text
    return text[:idx + 1]


def format_timestamp(dt: datetime) -> str:
    """RFC 3339 with whole seconds; a zero offset is written as 'Z'."""
    text = dt.replace(microsecond=0).isoformat()
    if dt.utcoffset() == timedelta(0):
        return text[:-len("+00:00")] + "Z"
    return text


def write_candles(candles: Iterable[Candle], stream: TextIO) -> int:
    """
    Write candles as headerless CSV. Rows are formatted before anything is
    written. Returns the number of rows.
    """
    rows = [c.to_row() for c in candles]
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerows(rows)
    stream.flush()
    return len(rows)


# ----------------------------------------------------------------------
# 8) CONFIG
# ----------------------------------------------------------------------
def _truthy_env(val: Optional[str]) -> bool:
    return (val or "").strip().lower() in ("1", "true", "yes", "on", "y", "t")


class Config:
    """
    Run configuration for the CLI. None paths mean stdin/stdout.
    """
    def __init__(
        self, *,
        input_path: Optional[str] = None,
        output_path: Optional[str] = None,
        verbose: bool = False,
    ):
        self.input_path = input_path
        self.output_path = output_path
        self.verbose = verbose or _truthy_env(os.environ.get(ENV_VERBOSE_KEY))


if __name__ == "__main__":
    print(f"{ERROR} This module should not be run directly. Use the tick-candles command.")
