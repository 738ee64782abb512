from __future__ import annotations

from datetime import datetime
from typing import Any

from . import streams


STUDENT_REQUIRED_KEYS = {"StudentID"}
STUDENT_OPTIONAL_KEYS = {"Firstname", "Lastname", "DateOfBirth"}

# EventBridge adds version/account/region/resources; those are tolerated, not required.
DELIVERED_EVENT_REQUIRED_KEYS = {"id", "source", "detail-type", "time", "detail"}


def _require_exact_keys(obj: dict[str, Any], *, required: set[str], optional: set[str] | None = None) -> None:
    optional = optional or set()
    keys = set(obj.keys())
    missing = required - keys
    extra = keys - required - optional
    if missing:
        raise ValueError(f"missing keys: {sorted(missing)}")
    if extra:
        raise ValueError(f"extra keys not allowed in v1: {sorted(extra)}")


def _require_keys(obj: dict[str, Any], *, required: set[str]) -> None:
    missing = required - set(obj.keys())
    if missing:
        raise ValueError(f"missing keys: {sorted(missing)}")


def _require_str(d: dict[str, Any], k: str) -> str:
    v = d.get(k)
    if not isinstance(v, str) or not v.strip():
        raise ValueError(f"{k} must be non-empty string")
    return v


def _require_optional_str(d: dict[str, Any], k: str) -> str | None:
    v = d.get(k)
    if v is not None and not isinstance(v, str):
        raise ValueError(f"{k} must be string or null")
    return v


def parse_iso8601(s: str) -> datetime:
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError as e:
        raise ValueError(f"invalid ISO8601 timestamp: {s}") from e
    if dt.tzinfo is None:
        raise ValueError("timestamp must include timezone")
    return dt


def validate_student_dict(record: dict[str, Any]) -> None:
    """Strict v1 validation of a student record (the event detail).

    - StudentID is the only mandatory field and must be a non-empty string (whitespace counts)
    - name and date-of-birth fields are optional strings (null allowed)
    - no extra fields
    """

    _require_exact_keys(record, required=STUDENT_REQUIRED_KEYS, optional=STUDENT_OPTIONAL_KEYS)
    student_id = record.get("StudentID")
    if not isinstance(student_id, str) or student_id == "":
        raise ValueError("StudentID must be non-empty string")
    for k in sorted(STUDENT_OPTIONAL_KEYS):
        _require_optional_str(record, k)


def validate_delivered_event_dict(event: dict[str, Any]) -> None:
    """Validate a queue message body delivered by the event bus rule.

    The envelope carries the producer timestamp in `time` and the student record
    in `detail` (an object, not a string, once delivered).
    """

    _require_keys(event, required=DELIVERED_EVENT_REQUIRED_KEYS)
    _require_str(event, "id")
    if _require_str(event, "source") != streams.STUDENT_REGISTRATION_SOURCE:
        raise ValueError(f"unexpected source: {event['source']}")
    if _require_str(event, "detail-type") != streams.STUDENT_REGISTERED_DETAIL_TYPE:
        raise ValueError(f"unexpected detail-type: {event['detail-type']}")
    parse_iso8601(_require_str(event, "time"))

    detail = event.get("detail")
    if not isinstance(detail, dict):
        raise ValueError("detail must be object")
    validate_student_dict(detail)
