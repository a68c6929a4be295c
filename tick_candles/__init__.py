from .tick_candles import (
    BASE_DURATIONS,
    Candle,
    InputFormatError,
    Observation,
    aggregate,
    build_candles,
    format_interval,
    infer_intervals,
    read_observations,
    write_candles,
)

__version__ = "0.1.0"
__all__ = [
    "BASE_DURATIONS",
    "Candle",
    "InputFormatError",
    "Observation",
    "aggregate",
    "build_candles",
    "format_interval",
    "infer_intervals",
    "read_observations",
    "write_candles",
]
