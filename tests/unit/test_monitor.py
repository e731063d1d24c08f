"""
Unit tests for the delivery monitor.
"""

import queue
from unittest.mock import patch

from otlp_replayer.monitor import monitor_responses, watch_responses


def test_watch_logs_only_failures():
    responses = queue.Queue()
    responses.put({"status_code": 202, "error": "", "metadata": None})
    responses.put({"status_code": 0, "error": "connection refused", "metadata": None})
    responses.put(None)

    with patch('otlp_replayer.monitor.logger') as mock_logger:
        watch_responses(responses)

    mock_logger.bind.assert_called_once()
    assert mock_logger.bind.call_args.kwargs["response"]["error"] == "connection refused"
    message = mock_logger.bind.return_value.error.call_args.args[0]
    assert "connection refused" in message


def test_monitor_stops_when_client_closes(client, transmission):
    thread = monitor_responses(client)

    assert thread.daemon
    assert thread.is_alive()

    transmission.close()
    thread.join(timeout=5)

    assert not thread.is_alive()
