"""
Stage plumbing for the replay pipeline.

Each stage runs in its own thread and hands items to the next one
through a Channel that holds at most one item, so a slow stage stalls
everything upstream of it instead of letting memory grow.
"""

import queue
from threading import Thread
from typing import Any, Iterable, Iterator

from loguru import logger
from prometheus_client import Counter


STAGE_ERRORS = Counter(
    'otlp_replayer_stage_errors_total',
    'Errors that stopped a pipeline stage',
    ['stage']
)

_CLOSED = object()


class Channel:
    """Bounded hand-off queue that is closed by its single writer."""

    def __init__(self, capacity: int = 1):
        self._queue = queue.Queue(maxsize=capacity)

    def put(self, item: Any):
        """Block until the reader has room for ``item``."""
        self._queue.put(item)

    def close(self):
        """Signal the reader that no more items will follow."""
        self._queue.put(_CLOSED)

    def __iter__(self) -> Iterator[Any]:
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                return
            yield item


def run_stage(name: str, items: Iterable[Any], capacity: int = 1) -> Channel:
    """
    Drain ``items`` into a new Channel from a background thread.

    Args:
        name: Thread name, used in log messages
        items: Lazy sequence produced by the stage
        capacity: Channel capacity

    Returns:
        Channel the next stage reads from. It is always closed once the
        stage finishes, whether it ran out of input or failed.
    """
    out = Channel(capacity)

    def worker():
        try:
            for item in items:
                out.put(item)
        except Exception:
            logger.exception(f"Stage {name} failed unexpectedly")
        finally:
            out.close()
            logger.debug(f"Stage {name} finished")

    Thread(target=worker, name=name, daemon=True).start()
    return out
