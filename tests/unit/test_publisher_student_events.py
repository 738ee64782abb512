from __future__ import annotations

import json
import random
from collections import Counter
from datetime import date

import pytest

from src.contracts import streams
from src.contracts.validation import validate_student_dict
from src.core.errors import InvalidInput, PublishFailed
from src.core.message_bus import PutEventsResult
from src.core.models import EventEnvelope, StudentRecord
from src.publisher.student_events import (
    StudentEventPublisher,
    build_student_event,
    generate_random_students,
    student_from_request,
)


ADA = {"StudentID": "123456", "Firstname": "Ada", "Lastname": "Lovelace", "DateOfBirth": "1990-01-01"}


class _FakeBus:
    def __init__(self, failed_entry_count: int = 0) -> None:
        self.calls: list[list[EventEnvelope]] = []
        self.failed_entry_count = failed_entry_count

    def put_events(self, envelopes) -> PutEventsResult:
        envelopes = list(envelopes)
        self.calls.append(envelopes)
        return PutEventsResult(entry_count=len(envelopes), failed_entry_count=self.failed_entry_count)


def test_publish_student_issues_one_call_with_round_trippable_detail() -> None:
    bus = _FakeBus()
    publisher = StudentEventPublisher(bus=bus, event_bus_name="StudentEventBus")

    ack = publisher.publish_student(ADA)

    assert ack.published == 1
    assert len(bus.calls) == 1
    assert len(bus.calls[0]) == 1
    ev = bus.calls[0][0]
    assert ev.source == streams.STUDENT_REGISTRATION_SOURCE
    assert ev.detail_type == streams.STUDENT_REGISTERED_DETAIL_TYPE
    assert ev.event_bus_name == "StudentEventBus"
    assert json.loads(ev.detail) == ADA
    assert ev.time.tzinfo is not None


@pytest.mark.parametrize(
    "payload",
    [
        None,
        [],
        "123456",
        {},
        {"StudentID": ""},
        {"StudentID": 42},
        {"StudentID": False},
        {"StudentID": None, "Firstname": "Ada"},
        {"Firstname": "Ada", "Lastname": "Lovelace"},
    ],
)
def test_publish_student_invalid_payload_makes_no_bus_call(payload) -> None:
    bus = _FakeBus()
    publisher = StudentEventPublisher(bus=bus)

    with pytest.raises(InvalidInput):
        publisher.publish_student(payload)
    assert bus.calls == []


def test_publish_student_rejected_entry_raises_publish_failed() -> None:
    bus = _FakeBus(failed_entry_count=1)
    publisher = StudentEventPublisher(bus=bus)

    with pytest.raises(PublishFailed) as exc:
        publisher.publish_student(ADA)
    assert exc.value.failed_entry_count == 1
    assert len(bus.calls) == 1


def test_student_from_request_ignores_unknown_keys_and_keeps_missing_as_none() -> None:
    record = student_from_request({"StudentID": "42", "Nickname": "x"})
    assert record == StudentRecord(student_id="42")
    validate_student_dict(record.to_wire_dict())


def test_build_student_event_detail_is_contract_valid() -> None:
    ev = build_student_event(record=StudentRecord.from_wire_dict(ADA), event_bus_name="bus")
    validate_student_dict(json.loads(ev.detail))


def test_generated_batch_is_one_call_with_same_membership() -> None:
    bus = _FakeBus()
    publisher = StudentEventPublisher(bus=bus, batch_size=20)

    expected = generate_random_students(20, rng=random.Random(7))
    ack = publisher.publish_generated_batch(rng=random.Random(7))

    assert ack.published == 20
    assert len(bus.calls) == 1
    submitted = [json.loads(ev.detail)["StudentID"] for ev in bus.calls[0]]
    assert Counter(submitted) == Counter(s.student_id for s in expected)


def test_generate_random_students_fields_are_in_range() -> None:
    students = generate_random_students(50, rng=random.Random(1))

    assert len(students) == 50
    assert {s.first_name for s in students} == {f"Student{i}" for i in range(50)}
    for s in students:
        assert 100000 <= int(s.student_id) < 999999
        dob = date.fromisoformat(s.date_of_birth)
        assert 1990 <= dob.year < 2010
        assert 1 <= dob.month < 12
        assert 1 <= dob.day < 28
        assert s.last_name == "Test" + s.first_name[len("Student"):]


def test_generate_random_students_is_shuffled() -> None:
    students = generate_random_students(20, rng=random.Random(3))
    order = [int(s.first_name[len("Student"):]) for s in students]
    assert sorted(order) == list(range(20))
    assert order != list(range(20))


def test_empty_batch_makes_no_bus_call() -> None:
    bus = _FakeBus()
    ack = StudentEventPublisher(bus=bus).publish_records([])
    assert ack.published == 0
    assert bus.calls == []


def test_whitespace_student_id_is_published_and_passes_detail_validation() -> None:
    bus = _FakeBus()
    ack = StudentEventPublisher(bus=bus).publish_student({"StudentID": "   "})

    assert ack.published == 1
    detail = json.loads(bus.calls[0][0].detail)
    assert detail["StudentID"] == "   "
    validate_student_dict(detail)
