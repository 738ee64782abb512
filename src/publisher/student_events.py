"""Publish side of the relay.

This module turns student records into `StudentRegistered` envelopes and submits
them to the event bus in a single PutEvents call per invocation.

Output (v1):
- source: com.student.registration
- detail-type: StudentRegistered
- detail: JSON student record {StudentID, Firstname, Lastname, DateOfBirth}

Contract rules:
- The only publish-time check is a non-empty StudentID
- Any rejected entry fails the whole submission (no per-entry detail)
- No local retry and no idempotency key
"""

from __future__ import annotations

import json
import logging
import random
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable, Optional

from src.contracts import streams
from src.core.errors import InvalidInput, PublishFailed
from src.core.ids import new_invocation_id
from src.core.message_bus import EventBus
from src.core.models import EventEnvelope, StudentRecord


logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _optional_str(v: Any) -> Optional[str]:
    return None if v is None else str(v)


def student_from_request(payload: Any) -> StudentRecord:
    """Build a StudentRecord from a decoded request body.

    Unknown keys are ignored. Raises InvalidInput when the body is not an object, or
    StudentID is missing, empty or not a string. Whitespace-only ids are accepted.
    """

    if not isinstance(payload, dict):
        raise InvalidInput("student payload must be an object")
    student_id = payload.get("StudentID")
    if student_id is None or student_id == "":
        raise InvalidInput("StudentID is required")
    if not isinstance(student_id, str):
        raise InvalidInput("StudentID must be a string")
    return StudentRecord(
        student_id=student_id,
        first_name=_optional_str(payload.get("Firstname")),
        last_name=_optional_str(payload.get("Lastname")),
        date_of_birth=_optional_str(payload.get("DateOfBirth")),
    )


def build_student_event(
    *,
    record: StudentRecord,
    event_bus_name: str,
    time: datetime | None = None,
) -> EventEnvelope:
    """Build a v1 StudentRegistered envelope for one record."""

    time = time or _now_utc()
    if time.tzinfo is None:
        time = time.replace(tzinfo=timezone.utc)
    return EventEnvelope(
        source=streams.STUDENT_REGISTRATION_SOURCE,
        detail_type=streams.STUDENT_REGISTERED_DETAIL_TYPE,
        detail=json.dumps(record.to_wire_dict(), ensure_ascii=False),
        event_bus_name=event_bus_name,
        time=time,
    )


def generate_random_students(count: int, *, rng: random.Random | None = None) -> list[StudentRecord]:
    """Synthetic records for load/ordering tests.

    Ids are 6-digit, DOB falls in [1990, 2010). The result is shuffled so that it is
    not in generation order.
    """

    if count < 0:
        raise ValueError("count must be >= 0")
    rng = rng or random.Random()
    students = [
        StudentRecord(
            student_id=str(rng.randrange(100000, 999999)),
            first_name=f"Student{i}",
            last_name=f"Test{i}",
            date_of_birth=date(
                rng.randrange(1990, 2010),
                rng.randrange(1, 12),
                rng.randrange(1, 28),
            ).isoformat(),
        )
        for i in range(count)
    ]
    rng.shuffle(students)
    return students


@dataclass(frozen=True)
class PublishAck:
    published: int


class StudentEventPublisher:
    """Wrap student records into envelopes and submit them to the bus."""

    def __init__(
        self,
        *,
        bus: EventBus,
        event_bus_name: str = streams.DEFAULT_EVENT_BUS_NAME,
        batch_size: int = 20,
        clock: Callable[[], datetime] = _now_utc,
    ):
        self.bus = bus
        self.event_bus_name = event_bus_name
        self.batch_size = batch_size
        self.clock = clock

    def publish_records(self, records: Iterable[StudentRecord]) -> PublishAck:
        invocation_id = new_invocation_id()
        events = [
            build_student_event(record=r, event_bus_name=self.event_bus_name, time=self.clock())
            for r in records
        ]
        if not events:
            return PublishAck(published=0)

        result = self.bus.put_events(events)
        if result.failed_entry_count > 0:
            logger.error(
                "publish_failed",
                extra={
                    "invocation_id": invocation_id,
                    "failed_entry_count": result.failed_entry_count,
                    "entry_count": result.entry_count,
                },
            )
            raise PublishFailed(result.failed_entry_count, result.entry_count)

        logger.info(f"Published {len(events)} event(s) to {self.event_bus_name} (invocation_id={invocation_id})")
        return PublishAck(published=len(events))

    def publish_student(self, payload: Any) -> PublishAck:
        record = student_from_request(payload)
        return self.publish_records([record])

    def publish_generated_batch(self, count: int | None = None, *, rng: random.Random | None = None) -> PublishAck:
        students = generate_random_students(self.batch_size if count is None else count, rng=rng)
        return self.publish_records(students)
