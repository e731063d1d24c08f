"""
Replay configuration, duration parsing and logging setup.
"""

import re
import sys
from dataclasses import dataclass, field
from datetime import timedelta

from loguru import logger


DEFAULT_HOST = "https://api.honeycomb.io"
DEFAULT_BATCH = 200
DEFAULT_SLEEP = timedelta(milliseconds=100)
DEFAULT_VERBOSITY = 4

# logrus-style numeric levels: panic, fatal, error, warn, info, debug, trace
VERBOSITY_LEVELS = {
    0: "CRITICAL",
    1: "CRITICAL",
    2: "ERROR",
    3: "WARNING",
    4: "INFO",
    5: "DEBUG",
    6: "TRACE",
}

_DURATION_UNITS = {
    "ns": 1e-3,
    "us": 1.0,
    "µs": 1.0,
    "μs": 1.0,
    "ms": 1e3,
    "s": 1e6,
    "m": 60e6,
    "h": 3600e6,
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


class ConfigError(ValueError):
    """Raised when the replay configuration is unusable."""


def parse_duration(value: str) -> timedelta:
    """
    Parse a Go-style duration string such as ``300ms``, ``1.5h`` or ``2h45m``.

    Args:
        value: Duration text. A bare ``0`` is accepted.

    Returns:
        Equivalent timedelta

    Raises:
        ValueError: On invalid syntax
    """
    text = value.strip()
    if not text:
        raise ValueError("empty duration")

    sign = 1
    if text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]

    if text == "0":
        return timedelta(0)

    micros = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if not match:
            raise ValueError(f"invalid duration {value!r}")
        micros += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    if pos == 0:
        raise ValueError(f"invalid duration {value!r}")

    return timedelta(microseconds=sign * micros)


@dataclass
class ReplayConfig:
    """
    Settings for one replay run.

    Attributes:
        path: File containing concatenated OTLP JSON export documents
        key: Honeycomb API key used to send the events
        dataset: Destination dataset; empty means each event uses the
            dataset of the batch it was translated into
        host: Honeycomb API host
        batch: Number of events sent in a row before pausing
        sleep: Pause between batches
        start: How long ago the first event should appear; zero disables rebasing
        verbosity: logrus-style log level (0-6)
        spinner: Show the progress spinner on a terminal
        metrics_port: Serve Prometheus metrics on this port when > 0
    """
    path: str = ""
    key: str = ""
    dataset: str = ""
    host: str = DEFAULT_HOST
    batch: int = DEFAULT_BATCH
    sleep: timedelta = field(default_factory=lambda: DEFAULT_SLEEP)
    start: timedelta = field(default_factory=timedelta)
    verbosity: int = DEFAULT_VERBOSITY
    spinner: bool = True
    metrics_port: int = 0

    def validate(self):
        """Raise ConfigError if a required setting is missing or out of range."""
        if not self.path:
            raise ConfigError("File Path is required")

        if not self.key:
            raise ConfigError("API Key is required")

        if self.batch < 0:
            raise ConfigError(f"Batch size must not be negative: {self.batch}")

        if self.sleep < timedelta(0):
            raise ConfigError(f"Sleep must not be negative: {self.sleep}")

        if self.start < timedelta(0):
            raise ConfigError(f"Start must not be negative: {self.start}")

        if self.verbosity not in VERBOSITY_LEVELS:
            raise ConfigError(f"Verbosity must be between 0 and 6: {self.verbosity}")


def setup_logging(verbosity: int = DEFAULT_VERBOSITY):
    """Route loguru output to stderr at the level matching ``verbosity``."""
    level = VERBOSITY_LEVELS.get(verbosity, "INFO")
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | {message}",
    )
    return logger
