"""Drain service - scheduled consumer of the student event queue.

This service:
1. Wakes up on a fixed wall-clock interval (default every 2 minutes, i.e. "0 */2 * * * *")
2. Runs one QueueDrainer cycle against the SQS queue
3. Optionally suppresses redelivered events through an idempotency store

Cycles never overlap: the next fire time is computed after the previous cycle returns.
"""

from __future__ import annotations

import argparse
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from src.core.idempotency import IdempotencyStore, InMemoryIdempotencyStore, RedisIdempotencyStore
from src.core.message_bus import SqsQueue
from src.core.settings import Settings, load_settings
from src.drain.queue_drainer import QueueDrainer

logger = logging.getLogger(__name__)


def next_fire_time(now: datetime, interval_seconds: int) -> datetime:
    """Next wall-clock instant that is a whole multiple of `interval_seconds` since the epoch.

    `now` itself is never returned, so a cycle that finishes exactly on a boundary
    waits a full interval.
    """

    if interval_seconds <= 0:
        raise ValueError("interval_seconds must be > 0")
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    epoch = datetime(1970, 1, 1, tzinfo=timezone.utc)
    elapsed = (now - epoch).total_seconds()
    ticks = int(elapsed // interval_seconds) + 1
    return epoch + timedelta(seconds=ticks * interval_seconds)


def create_idempotency_store(s: Settings) -> Optional[IdempotencyStore]:
    """Create the dedup store based on settings (None when dedup is disabled)."""
    if not s.dedupe_enabled:
        return None
    if s.dedupe_redis_url:
        logger.info("Using Redis idempotency store")
        return RedisIdempotencyStore.from_url(s.dedupe_redis_url)
    logger.info("Using in-memory idempotency store (dev mode)")
    return InMemoryIdempotencyStore(max_entries=s.dedupe_max_entries)


def build_drainer(s: Settings) -> QueueDrainer:
    return QueueDrainer(
        queue=SqsQueue.from_settings(s),
        max_messages=s.drain_max_messages,
        wait_seconds=s.drain_wait_seconds,
        idempotency=create_idempotency_store(s),
        dedupe_ttl_seconds=s.dedupe_ttl_seconds,
    )


def run_forever(
    drainer: QueueDrainer,
    *,
    interval_seconds: int,
    clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    sleep: Callable[[float], None] = time.sleep,
    max_cycles: int | None = None,
) -> None:
    cycles = 0
    while max_cycles is None or cycles < max_cycles:
        fire_at = next_fire_time(clock(), interval_seconds)
        delay = (fire_at - clock()).total_seconds()
        if delay > 0:
            sleep(delay)
        logger.info(f"Drain triggered at: {clock().isoformat()}")
        drainer.run_cycle()
        cycles += 1


def main(argv: list[str] | None = None) -> None:
    """Run the drain service."""
    ap = argparse.ArgumentParser(description="Drain the student event queue on a fixed schedule.")
    ap.add_argument("--settings", default=None, help="Defaults to $STUDENT_RELAY_SETTINGS or config/settings.yaml.")
    ap.add_argument("--once", action="store_true", help="Run a single drain cycle and exit.")
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    s = load_settings(args.settings)

    logger.info("Starting drain service...")
    logger.info(f"Queue URL: {s.queue_url}")

    drainer = build_drainer(s)
    if args.once:
        drainer.run_cycle()
        return

    try:
        run_forever(drainer, interval_seconds=s.drain_interval_seconds)
    except KeyboardInterrupt:
        logger.info("Shutting down drain service...")


if __name__ == "__main__":
    main()
