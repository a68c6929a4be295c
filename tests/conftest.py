"""Shared test fixtures and utilities."""

import io

import pytest

from tick_candles.tick_candles import Observation, parse_rfc3339, read_observations


SCENARIO_TEXT = (
    "A,10.00,2024-01-01T00:00:00Z\n"
    "A,12.00,2024-01-01T00:00:30Z\n"
    "A,11.00,2024-01-01T00:01:10Z\n"
    "\n"
)


def make_observation(instrument_id: str, price: float, timestamp: str) -> Observation:
    """Helper to build an Observation from an RFC 3339 string.

    Args:
        instrument_id: Instrument identifier
        price: Tick price
        timestamp: RFC 3339 timestamp with offset

    Returns:
        Observation object
    """
    return Observation(instrument_id=instrument_id, price=price, timestamp=parse_rfc3339(timestamp))


def observations_from_text(text: str) -> list[Observation]:
    """Parse input text the same way the CLI does."""
    return read_observations(io.StringIO(text))


@pytest.fixture
def scenario_observations():
    """Three ticks of A spanning two one-minute buckets."""
    return observations_from_text(SCENARIO_TEXT)


@pytest.fixture
def two_instrument_observations():
    """B listed first in the input; both instruments have qualifying data."""
    return observations_from_text(
        "B,5.00,2024-01-01T00:00:10Z\n"
        "A,10.00,2024-01-01T00:00:00Z\n"
        "B,6.00,2024-01-01T00:01:20Z\n"
        "A,12.00,2024-01-01T00:00:30Z\n"
        "B,4.00,2024-01-01T00:02:05Z\n"
        "A,11.00,2024-01-01T00:01:10Z\n"
        "\n"
    )


@pytest.fixture
def scattered_observations():
    """Two instruments with uneven, partly unsorted tick spacing."""
    rows = [
        ("X", 100.0, "2024-03-01T10:00:05Z"),
        ("X", 101.5, "2024-03-01T10:00:40Z"),
        ("Y", 20.0, "2024-03-01T10:00:00Z"),
        ("X", 99.0, "2024-03-01T10:01:15Z"),
        ("X", 102.0, "2024-03-01T10:03:59Z"),
        ("Y", 21.0, "2024-03-01T10:05:00Z"),
        ("X", 98.5, "2024-03-01T10:02:30Z"),
        ("Y", 19.5, "2024-03-01T10:09:30Z"),
        ("X", 103.0, "2024-03-01T10:07:00Z"),
        ("Y", 22.0, "2024-03-01T10:10:01+01:00"),
        ("X", 97.0, "2024-03-01T10:07:45Z"),
        ("Y", 23.5, "2024-03-01T10:12:00Z"),
    ]
    return [make_observation(*row) for row in rows]
