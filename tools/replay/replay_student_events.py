from __future__ import annotations

import argparse
import glob
import json
import sys
from pathlib import Path

# Allow running from repo root without installing as a package.
sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from src.contracts.validation import validate_delivered_event_dict, validate_student_dict
from src.core.message_bus import EventBridgeBus
from src.core.models import StudentRecord
from src.core.settings import load_settings
from src.publisher.student_events import StudentEventPublisher


def _iter_event_files(root: Path) -> list[Path]:
    return [Path(p) for p in sorted(glob.glob(str(root / "*.json")))]


def load_student(ev: dict) -> StudentRecord:
    """Accept either a delivered event (queue message body) or a bare student record."""
    if "detail" in ev:
        validate_delivered_event_dict(ev)
        return StudentRecord.from_wire_dict(ev["detail"])
    validate_student_dict(ev)
    return StudentRecord.from_wire_dict(ev)


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--settings", default=None, help="Defaults to $STUDENT_RELAY_SETTINGS or config/settings.yaml.")
    ap.add_argument("--events-dir", default=str(Path("contracts") / "golden_events" / "v1"))
    ap.add_argument("--dry-run", action="store_true")
    ap.add_argument(
        "--fail-on-invalid",
        action="store_true",
        help="By default invalid (dirty) events are skipped. Use this flag to fail fast instead.",
    )
    args = ap.parse_args()

    root = Path(args.events_dir)
    files = _iter_event_files(root)
    if not files:
        raise SystemExit(f"no events found under {root}")

    records: list[StudentRecord] = []
    for fp in files:
        try:
            records.append(load_student(json.loads(fp.read_text(encoding="utf-8"))))
        except ValueError as e:
            if args.fail_on_invalid:
                raise
            print(f"[skip-invalid] {fp.name}: {e}")
            continue
        print(f"{'[dry-run] ' if args.dry_run else ''}StudentID={records[-1].student_id} <- {fp.name}")

    if args.dry_run or not records:
        return

    s = load_settings(args.settings)
    publisher = StudentEventPublisher(bus=EventBridgeBus.from_settings(s), event_bus_name=s.event_bus_name)
    ack = publisher.publish_records(records)
    print(f"put_events {s.event_bus_name} <- {ack.published} event(s)")


if __name__ == "__main__":
    main()
