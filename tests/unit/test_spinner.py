"""
Unit tests for the progress spinner.
"""

import io

from otlp_replayer.spinner import Spinner


def test_spinner_draws_until_stopped():
    stream = io.StringIO()

    with Spinner("Working", stream=stream) as spinner:
        spinner._stop.wait(0.25)

    output = stream.getvalue()
    assert output.startswith("\rWorking\x1b[92m -\x1b[39m")
    assert output.endswith("\n")
    assert not spinner._thread.is_alive()
