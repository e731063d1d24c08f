"""
Unit tests for the event producer.
Tests dataset routing, timestamp rebasing, throttling and send failures.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, patch

import libhoney
import pytest

from otlp_replayer.otlp import Batch, Event, TranslateOTLPRequestResult
from otlp_replayer.producer import EventProducer


T0 = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)


def make_result(*timestamps, dataset="test"):
    events = [
        Event(attributes={"test": "test", "n": i}, timestamp=ts, sample_rate=1)
        for i, ts in enumerate(timestamps)
    ]
    return TranslateOTLPRequestResult(request_size=1, batches=[Batch(dataset=dataset, size_bytes=10, events=events)])


@pytest.fixture
def mock_client():
    """Client whose events are plain mocks."""
    client = Mock()
    client.new_event.side_effect = lambda: Mock()
    return client


def test_produce_single_event(client, transmission):
    """Test one batch with one event yields one sent event."""
    result = TranslateOTLPRequestResult(
        request_size=1,
        batches=[Batch(dataset="test", size_bytes=10, events=[
            Event(attributes={"test": "test"}, timestamp=T0, sample_rate=3),
        ])],
    )
    producer = EventProducer(client, dataset="", batch=1, start=timedelta(0), sleep=timedelta(0))

    events = list(producer.produce([result]))

    assert len(events) == 1
    assert len(transmission.events) == 1
    sent = transmission.events[0]
    assert sent.fields() == {"test": "test"}
    assert sent.sample_rate == 3
    assert sent.dataset == "test"
    assert sent.created_at == T0


def test_run_level_dataset_kept(transmission):
    """Test the batch dataset is only used when no dataset is configured."""
    client = libhoney.Client(writekey="test", dataset="fixed", transmission_impl=transmission)
    producer = EventProducer(client, dataset="fixed", batch=10, sleep=timedelta(0))

    event = list(producer.produce([make_result(T0, dataset="from-batch")]))[0]
    client.close()

    assert event.dataset == "fixed"
    assert transmission.events == [event]


def test_no_rebase_keeps_timestamps(mock_client):
    """Test timestamps pass through unchanged when start is zero."""
    timestamps = [T0, T0 + timedelta(seconds=5), T0 - timedelta(seconds=2)]
    producer = EventProducer(mock_client, batch=10, start=timedelta(0), sleep=timedelta(0))

    events = list(producer.produce([make_result(*timestamps)]))

    assert [e.created_at for e in events] == timestamps
    assert producer.adjustment == timedelta(0)


def test_rebase_anchors_first_event(mock_client):
    """Test the first event lands at now - start and deltas are kept."""
    start = timedelta(hours=1)
    producer = EventProducer(mock_client, batch=10, start=start, sleep=timedelta(0))

    assert abs(producer.begin - (datetime.now(timezone.utc) - start)) < timedelta(seconds=5)

    timestamps = [T0, T0 + timedelta(seconds=5), T0 - timedelta(seconds=2)]
    events = list(producer.produce([make_result(*timestamps[:2]), make_result(timestamps[2])]))

    assert producer.adjustment == producer.begin - T0
    assert events[0].created_at == producer.begin
    assert events[1].created_at == producer.begin + timedelta(seconds=5)
    assert events[2].created_at == producer.begin - timedelta(seconds=2)


def test_rebase_computed_once(mock_client):
    """Test an anchor that happens to be zero is not recomputed."""
    producer = EventProducer(mock_client, batch=10, start=timedelta(minutes=1), sleep=timedelta(0))
    first = producer.begin

    events = list(producer.produce([make_result(first, first + timedelta(seconds=1))]))

    assert producer.adjustment == timedelta(0)
    assert events[1].created_at == first + timedelta(seconds=1)


def test_throttle_boundary(mock_client):
    """Test the first batch+1 events go out without a pause."""
    producer = EventProducer(mock_client, batch=2, sleep=timedelta(milliseconds=250))
    calls = []

    with patch('otlp_replayer.producer.time.sleep') as mock_sleep:
        mock_sleep.side_effect = lambda seconds: calls.append(mock_client.new_event.call_count)
        events = list(producer.produce([make_result(*[T0] * 5)]))

    assert len(events) == 5
    assert mock_sleep.call_count == 1
    mock_sleep.assert_called_with(0.25)
    # the pause happens before the 4th event is built
    assert calls == [3]
    assert producer.count == 2


def test_throttle_zero_sleep_still_pauses(mock_client):
    producer = EventProducer(mock_client, batch=1, sleep=timedelta(0))

    with patch('otlp_replayer.producer.time.sleep') as mock_sleep:
        events = list(producer.produce([make_result(T0), make_result(T0), make_result(T0)]))

    assert len(events) == 3
    mock_sleep.assert_called_once_with(0.0)


def test_send_failure_skips_event(mock_client):
    """Test a refused event is dropped and the next one still sent."""
    failing = Mock()
    failing.send_presampled.side_effect = Exception("No metrics added to event")
    events_built = [Mock(), failing, Mock()]
    mock_client.new_event.side_effect = events_built

    producer = EventProducer(mock_client, batch=10, sleep=timedelta(0))

    events = list(producer.produce([make_result(T0, T0, T0)]))

    assert events == [events_built[0], events_built[2]]
    assert producer.count == 2
    for built in events_built:
        built.send_presampled.assert_called_once()


def test_state_spans_results(mock_client):
    """Test the counter carries over between translation results."""
    producer = EventProducer(mock_client, batch=1, sleep=timedelta(0))

    with patch('otlp_replayer.producer.time.sleep') as mock_sleep:
        list(producer.produce([make_result(T0, T0), make_result(T0, T0)]))

    assert mock_sleep.call_count == 1
