"""
Delivery monitor - logs events Honeycomb failed to accept.
"""

from threading import Thread

import libhoney
from loguru import logger
from prometheus_client import Counter


DELIVERY_FAILURES = Counter(
    'otlp_replayer_delivery_failures_total',
    'Total events reported as failed by the Honeycomb client'
)


def watch_responses(responses):
    """Drain ``responses`` until the client closes it, logging each failure."""
    while True:
        resp = responses.get()
        if resp is None:
            logger.debug("Response queue closed")
            return

        if resp.get("error"):
            DELIVERY_FAILURES.inc()
            logger.bind(response=resp).error(f"Failed to send event: {resp['error']} (response: {resp})")


def monitor_responses(client: libhoney.Client) -> Thread:
    """
    Start watching the client's delivery results in a daemon thread.

    Must be called before the first event is sent so no result is missed.
    """
    thread = Thread(target=watch_responses, args=(client.responses(),), name="delivery-monitor", daemon=True)
    thread.start()
    return thread
