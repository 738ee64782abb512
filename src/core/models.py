from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class StudentRecord:
    student_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[str] = None

    def to_wire_dict(self) -> Dict[str, Any]:
        return {
            "StudentID": self.student_id,
            "Firstname": self.first_name,
            "Lastname": self.last_name,
            "DateOfBirth": self.date_of_birth,
        }

    @classmethod
    def from_wire_dict(cls, d: Dict[str, Any]) -> "StudentRecord":
        return cls(
            student_id=d["StudentID"],
            first_name=d.get("Firstname"),
            last_name=d.get("Lastname"),
            date_of_birth=d.get("DateOfBirth"),
        )


@dataclass(frozen=True)
class EventEnvelope:
    source: str
    detail_type: str
    detail: str
    event_bus_name: str
    time: datetime


@dataclass(frozen=True)
class QueueMessage:
    message_id: str
    body: str
    receipt_handle: str


@dataclass(frozen=True)
class ReceivedStudentEvent:
    message: QueueMessage
    event_id: str
    time: datetime
    student: StudentRecord
