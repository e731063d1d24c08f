"""
Terminal progress spinner shown while the replay runs.
"""

import sys
from threading import Event, Thread


FRAMES = "-\\|/"
INTERVAL_SECONDS = 0.1


class Spinner:
    """Redraws ``message`` with a rotating frame until stopped."""

    def __init__(self, message: str = "Working", stream=None):
        self.message = message
        self.stream = stream or sys.stdout
        self._stop = Event()
        self._thread = None

    def _spin(self):
        while True:
            for frame in FRAMES:
                self.stream.write(f"\r{self.message}\x1b[92m {frame}\x1b[39m")
                self.stream.flush()
                if self._stop.wait(INTERVAL_SECONDS):
                    return

    def start(self):
        self._thread = Thread(target=self._spin, name="spinner", daemon=True)
        self._thread.start()

    def stop(self):
        self._stop.set()
        if self._thread:
            self._thread.join()
            self.stream.write("\n")
            self.stream.flush()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
