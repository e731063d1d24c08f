"""
Replayer - wires the pipeline stages together and drives one run.

    decoder -> trace translator -> event translator -> producer

Each stage runs in its own thread. The driver only counts the events
the producer emits.
"""

import contextlib
import sys
import threading
import time
from typing import Dict, Optional

import libhoney
from loguru import logger
from prometheus_client import start_http_server

from .config import ReplayConfig
from .decoder import decode_records
from .events import translate_trace_requests
from .monitor import monitor_responses
from .pipeline import run_stage
from .producer import EventProducer
from .spinner import Spinner
from .traces import translate_collector_traces


# seconds to wait for the delivery monitor once the client is closed
MONITOR_JOIN_TIMEOUT = 5.0


class ReplayError(RuntimeError):
    """Raised when a run cannot start."""


class ReplayStats:
    """Track replay statistics."""

    def __init__(self):
        self.events_sent = 0
        self.start_time = time.time()

    def duration(self) -> float:
        """Get duration in seconds."""
        return time.time() - self.start_time

    def rate(self) -> float:
        """Get events per second rate."""
        duration = self.duration()
        return self.events_sent / duration if duration > 0 else 0.0

    def to_dict(self) -> Dict:
        return {
            'events_sent': self.events_sent,
            'duration_seconds': round(self.duration(), 2),
            'rate_events_per_sec': round(self.rate(), 2),
        }


class Replayer:
    """Main replayer class."""

    def __init__(self, config: ReplayConfig, transmission=None):
        """
        Initialize Replayer.

        Args:
            config: Validated replay settings
            transmission: libhoney transmission override; None uses libhoney's
                HTTP transmission
        """
        self.config = config
        self.transmission = transmission
        self.stats = ReplayStats()
        self.client: Optional[libhoney.Client] = None
        self.monitor: Optional[threading.Thread] = None

    def _init_client(self) -> libhoney.Client:
        """Initialize the Honeycomb client."""
        try:
            return libhoney.Client(
                writekey=self.config.key,
                dataset=self.config.dataset,
                api_host=self.config.host,
                transmission_impl=self.transmission,
            )
        except Exception as e:
            raise ReplayError(f"Failed to initialize honeycomb: {e}") from e

    def _open_input(self):
        try:
            return open(self.config.path, 'rb')
        except OSError as e:
            raise ReplayError(f"Failed to open file: {e}") from e

    def _spinner(self):
        if self.config.spinner and sys.stdout.isatty():
            return Spinner("Working")
        return contextlib.nullcontext()

    def _close_client(self):
        """Flush pending events, then wait for the monitor to log their responses."""
        self.client.close()
        self.monitor.join(timeout=MONITOR_JOIN_TIMEOUT)
        if self.monitor.is_alive():
            logger.warning("Delivery monitor did not finish after close")

    def run(self) -> int:
        """
        Execute the replay.

        Returns:
            Number of events handed to Honeycomb

        Raises:
            ReplayError: If the client cannot be built or the file cannot be opened
        """
        if self.config.metrics_port > 0:
            start_http_server(self.config.metrics_port)
            logger.info(f"Metrics server started on port {self.config.metrics_port}")

        self.client = self._init_client()
        self.monitor = monitor_responses(self.client)

        try:
            stream = self._open_input()
        except ReplayError:
            self._close_client()
            raise

        logger.info(f"Replaying {self.config.path} (batch={self.config.batch}, "
                    f"sleep={self.config.sleep}, start={self.config.start})")

        producer = EventProducer(
            self.client,
            dataset=self.config.dataset,
            batch=self.config.batch,
            start=self.config.start,
            sleep=self.config.sleep,
        )

        try:
            with self._spinner():
                records = run_stage("decoder", decode_records(stream))
                requests = run_stage("trace-translator", translate_collector_traces(records))
                translated = run_stage("event-translator", translate_trace_requests(requests))
                events = run_stage("producer", producer.produce(translated))

                for _ in events:
                    self.stats.events_sent += 1
        finally:
            self._close_client()
            try:
                stream.close()
            except OSError as e:
                logger.warning(f"Failed to close file: {e}")

        logger.info(f"Finished: sent {self.stats.events_sent} events")
        logger.debug(f"Replay stats: {self.stats.to_dict()}")
        return self.stats.events_sent
