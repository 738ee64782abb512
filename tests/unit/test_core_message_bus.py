from __future__ import annotations

from datetime import datetime, timezone

import pytest
from botocore.exceptions import ClientError

from src.core.errors import TransientInfrastructureError
from src.core.message_bus import EventBridgeBus, SqsQueue, envelope_to_entry
from src.core.models import EventEnvelope


def _client_error(op: str) -> ClientError:
    return ClientError({"Error": {"Code": "InternalError", "Message": "boom"}}, op)


class _FakeEventsClient:
    def __init__(self, response: dict | None = None, error: Exception | None = None) -> None:
        self.calls: list[dict] = []
        self._response = response if response is not None else {"FailedEntryCount": 0, "Entries": []}
        self._error = error

    def put_events(self, **kwargs):
        self.calls.append(kwargs)
        if self._error is not None:
            raise self._error
        return self._response


class _FakeSqsClient:
    def __init__(self, messages: list[dict] | None = None, error: Exception | None = None) -> None:
        self.receive_calls: list[dict] = []
        self.delete_calls: list[dict] = []
        self._messages = messages
        self._error = error

    def receive_message(self, **kwargs):
        self.receive_calls.append(kwargs)
        if self._error is not None:
            raise self._error
        return {} if self._messages is None else {"Messages": self._messages}

    def delete_message(self, **kwargs):
        self.delete_calls.append(kwargs)
        if self._error is not None:
            raise self._error
        return {}


def _envelope(time: datetime) -> EventEnvelope:
    return EventEnvelope(
        source="com.student.registration",
        detail_type="StudentRegistered",
        detail='{"StudentID": "1"}',
        event_bus_name="StudentEventBus",
        time=time,
    )


def test_envelope_to_entry_maps_fields_and_assumes_utc() -> None:
    entry = envelope_to_entry(_envelope(datetime(2026, 1, 1, 12, 0)))
    assert entry == {
        "Source": "com.student.registration",
        "DetailType": "StudentRegistered",
        "Detail": '{"StudentID": "1"}',
        "EventBusName": "StudentEventBus",
        "Time": datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc),
    }


def test_event_bridge_bus_submits_all_entries_in_one_call() -> None:
    client = _FakeEventsClient({"FailedEntryCount": 1, "Entries": []})
    bus = EventBridgeBus(client=client)
    t = datetime(2026, 1, 1, tzinfo=timezone.utc)

    result = bus.put_events([_envelope(t), _envelope(t)])

    assert len(client.calls) == 1
    assert len(client.calls[0]["Entries"]) == 2
    assert result.entry_count == 2
    assert result.failed_entry_count == 1


def test_event_bridge_bus_wraps_client_errors() -> None:
    bus = EventBridgeBus(client=_FakeEventsClient(error=_client_error("PutEvents")))
    with pytest.raises(TransientInfrastructureError):
        bus.put_events([_envelope(datetime(2026, 1, 1, tzinfo=timezone.utc))])


def test_sqs_queue_receive_passes_limits_and_maps_messages() -> None:
    client = _FakeSqsClient([{"MessageId": "m-1", "Body": "{}", "ReceiptHandle": "rh-1"}])
    queue = SqsQueue("http://queue", client=client)

    messages = queue.receive(max_messages=10, wait_seconds=2)

    assert client.receive_calls == [{"QueueUrl": "http://queue", "MaxNumberOfMessages": 10, "WaitTimeSeconds": 2}]
    assert [(m.message_id, m.body, m.receipt_handle) for m in messages] == [("m-1", "{}", "rh-1")]


def test_sqs_queue_receive_without_messages_key_returns_empty() -> None:
    queue = SqsQueue("http://queue", client=_FakeSqsClient(None))
    assert queue.receive(max_messages=10, wait_seconds=2) == []


def test_sqs_queue_delete_uses_receipt_handle() -> None:
    client = _FakeSqsClient([])
    SqsQueue("http://queue", client=client).delete("rh-9")
    assert client.delete_calls == [{"QueueUrl": "http://queue", "ReceiptHandle": "rh-9"}]


def test_sqs_queue_wraps_client_errors() -> None:
    queue = SqsQueue("http://queue", client=_FakeSqsClient(error=_client_error("DeleteMessage")))
    with pytest.raises(TransientInfrastructureError):
        queue.delete("rh-1")
    with pytest.raises(TransientInfrastructureError):
        queue.receive(max_messages=1, wait_seconds=0)
