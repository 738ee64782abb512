"""Consume side of the relay: one bounded poll-process-delete cycle.

Per message: Pending (in queue) -> Fetched -> Decoded -> Processed -> Deleted.

Delivery is at-least-once. A message that is not deleted (malformed, or left
behind by an aborted cycle) becomes visible again after the queue's visibility
timeout and is fetched by a later cycle. Ordering is by producer `time` within
one fetched batch only.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from src.contracts.validation import parse_iso8601, validate_delivered_event_dict
from src.core.ids import new_invocation_id
from src.core.idempotency import IdempotencyStore
from src.core.message_bus import MessageQueue
from src.core.models import QueueMessage, ReceivedStudentEvent, StudentRecord


logger = logging.getLogger(__name__)


def decode_message(message: QueueMessage) -> ReceivedStudentEvent:
    """Decode one queue message body. Raises ValueError when the body is not a valid v1 event."""

    try:
        wire = json.loads(message.body)
    except json.JSONDecodeError as e:
        raise ValueError(f"body is not JSON: {e}") from e
    if not isinstance(wire, dict):
        raise ValueError("body must be a JSON object")
    validate_delivered_event_dict(wire)
    return ReceivedStudentEvent(
        message=message,
        event_id=wire["id"],
        time=parse_iso8601(wire["time"]),
        student=StudentRecord.from_wire_dict(wire["detail"]),
    )


def sort_by_time(events: list[ReceivedStudentEvent]) -> list[ReceivedStudentEvent]:
    # Stable: equal timestamps keep the order the queue returned them in.
    return sorted(events, key=lambda ev: ev.time)


def log_student_event(event: ReceivedStudentEvent) -> None:
    """Default processing step: log the event contents."""

    s = event.student
    logger.info(f"Processing event: {event.message.body}")
    logger.info(
        f"Student ID: {s.student_id}, Name: {s.first_name} {s.last_name}, "
        f"DOB: {s.date_of_birth}, Timestamp: {event.time.isoformat()}"
    )


@dataclass
class DrainStats:
    fetched: int = 0
    processed: int = 0
    deleted: int = 0
    malformed: int = 0
    duplicates: int = 0
    aborted: bool = False
    processed_event_ids: list[str] = field(default_factory=list)


class QueueDrainer:
    """Fetch, decode, order, process and delete one batch of queue messages."""

    def __init__(
        self,
        *,
        queue: MessageQueue,
        handler: Callable[[ReceivedStudentEvent], None] = log_student_event,
        max_messages: int = 10,
        wait_seconds: int = 2,
        idempotency: Optional[IdempotencyStore] = None,
        dedupe_ttl_seconds: int = 24 * 3600,
    ):
        if not (1 <= max_messages <= 10):
            raise ValueError("max_messages must be 1..10")
        self.queue = queue
        self.handler = handler
        self.max_messages = max_messages
        self.wait_seconds = wait_seconds
        self.idempotency = idempotency
        self.dedupe_ttl_seconds = dedupe_ttl_seconds

    def _decode_batch(self, messages: list[QueueMessage], stats: DrainStats) -> list[ReceivedStudentEvent]:
        decoded: list[ReceivedStudentEvent] = []
        for msg in messages:
            try:
                decoded.append(decode_message(msg))
            except ValueError as e:
                # Left in the queue; the redrive policy (or an operator) takes it from here.
                stats.malformed += 1
                logger.warning("skip_malformed_message", extra={"error": str(e), "message_id": msg.message_id})
        return decoded

    def drain_once(self, stats: DrainStats | None = None) -> DrainStats:
        """Run one cycle. Exceptions from fetch, process or delete propagate."""

        stats = stats if stats is not None else DrainStats()
        messages = self.queue.receive(max_messages=self.max_messages, wait_seconds=self.wait_seconds)
        stats.fetched = len(messages)
        if not messages:
            logger.info("No new events in the queue.")
            return stats

        for ev in sort_by_time(self._decode_batch(messages, stats)):
            if self.idempotency is not None and self.idempotency.seen(ev.event_id):
                stats.duplicates += 1
                logger.info(f"Skipping already processed event: id={ev.event_id}")
                self.queue.delete(ev.message.receipt_handle)
                stats.deleted += 1
                continue

            self.handler(ev)
            stats.processed += 1
            stats.processed_event_ids.append(ev.event_id)
            if self.idempotency is not None:
                self.idempotency.mark(ev.event_id, ttl_seconds=self.dedupe_ttl_seconds)

            self.queue.delete(ev.message.receipt_handle)
            stats.deleted += 1

        if stats.malformed:
            logger.info(f"Processed {stats.processed} event(s); {stats.malformed} malformed message(s) left in the queue.")
        else:
            logger.info("All events processed successfully.")
        return stats

    def run_cycle(self) -> DrainStats:
        """Scheduled entrypoint: never raises, the next cycle is the only retry."""

        cycle_id = new_invocation_id()
        logger.info(f"Drain cycle {cycle_id} started.")
        stats = DrainStats()
        try:
            self.drain_once(stats)
        except Exception as e:
            stats.aborted = True
            logger.error(f"Error processing events: {e}")
        return stats
