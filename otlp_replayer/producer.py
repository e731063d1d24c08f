"""
Event producer - sends translated events to Honeycomb at a controlled pace.
"""

import time
from datetime import datetime, timedelta, timezone
from typing import Iterable, Iterator

import libhoney
from loguru import logger
from prometheus_client import Counter

from .otlp import TranslateOTLPRequestResult


EVENTS_SENT = Counter(
    'otlp_replayer_events_sent_total',
    'Total events handed to the Honeycomb client'
)
SEND_FAILURES = Counter(
    'otlp_replayer_send_failures_total',
    'Total events the Honeycomb client refused'
)
THROTTLE_PAUSES = Counter(
    'otlp_replayer_throttle_pauses_total',
    'Total pauses inserted between batches'
)


class EventProducer:
    """
    Flattens translated batches into libhoney events and sends them.

    State lives for the whole run:
    - ``count``: events sent since the last pause
    - ``adjustment``: offset added to every timestamp, anchored on the
      first event so it lands at ``begin``
    """

    def __init__(
        self,
        client: libhoney.Client,
        dataset: str = "",
        batch: int = 200,
        start: timedelta = timedelta(0),
        sleep: timedelta = timedelta(milliseconds=100),
    ):
        """
        Initialize EventProducer.

        Args:
            client: Honeycomb client events are sent through
            dataset: Run-level dataset; empty means use each batch's dataset
            batch: Events sent in a row before pausing
            start: How long ago the first event should appear; zero disables rebasing
            sleep: Length of each pause
        """
        self.client = client
        self.dataset = dataset
        self.batch = batch
        self.start = start
        self.sleep = sleep

        # the instant the first event is moved to
        self.begin = datetime.now(timezone.utc) - start

        self.adjustment = timedelta(0)
        self._adjusted = False
        self.count = 0

    def _adjust(self, timestamp: datetime):
        if self._adjusted:
            return
        self._adjusted = True
        if self.start > timedelta(0):
            self.adjustment = self.begin - timestamp
            logger.debug(f"Shifting event timestamps by {self.adjustment}")

    def _throttle(self):
        if self.count > self.batch:
            THROTTLE_PAUSES.inc()
            time.sleep(self.sleep.total_seconds())
            self.count = 0

    def produce(self, results: Iterable[TranslateOTLPRequestResult]) -> Iterator[libhoney.Event]:
        """
        Send every event in ``results`` and yield the ones accepted.

        Events the client refuses are logged and skipped.
        """
        for result in results:
            for batch in result.batches:
                for source in batch.events:
                    self._adjust(source.timestamp)
                    self._throttle()

                    event = self.client.new_event()
                    event.add(source.attributes)
                    event.sample_rate = source.sample_rate
                    event.created_at = source.timestamp + self.adjustment

                    if not self.dataset:
                        event.dataset = batch.dataset

                    try:
                        event.send_presampled()
                    except Exception as e:
                        SEND_FAILURES.inc()
                        logger.error(f"Failed to send event: {e}")
                        continue

                    EVENTS_SENT.inc()
                    self.count += 1
                    yield event

