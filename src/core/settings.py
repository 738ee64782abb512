from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import os

from src.contracts import streams


@dataclass(frozen=True)
class Settings:
    env: str
    aws_endpoint_url: str | None
    aws_region: str
    aws_access_key_id: str
    aws_secret_access_key: str
    event_bus_name: str
    queue_url: str
    drain_max_messages: int = 10
    drain_wait_seconds: int = 2
    drain_interval_seconds: int = 120
    publisher_batch_size: int = 20
    dedupe_enabled: bool = False
    dedupe_redis_url: str | None = None
    dedupe_ttl_seconds: int = 24 * 3600
    dedupe_max_entries: int = 10_000


DEFAULT_SETTINGS_PATH = Path(__file__).resolve().parents[2] / "config" / "settings.yaml"


def default_settings_path() -> Path:
    """`STUDENT_RELAY_SETTINGS` if set, else the repo's config/settings.yaml (independent of cwd)."""
    env_path = os.getenv("STUDENT_RELAY_SETTINGS")
    return Path(env_path) if env_path else DEFAULT_SETTINGS_PATH


def load_settings(path: str | Path | None = None) -> Settings:
    p = Path(path) if path is not None else default_settings_path()

    # Keep imports optional at module import time (tests/tools may not need YAML).
    try:
        import yaml  # type: ignore
    except ModuleNotFoundError as e:  # pragma: no cover
        raise ModuleNotFoundError(
            "PyYAML is required to load config/settings.yaml. Install with: pip install pyyaml"
        ) from e

    data: Dict[str, Any] = yaml.safe_load(p.read_text(encoding="utf-8")) or {}

    # Env overrides (used for LocalStack vs. real AWS profiles).
    env_endpoint_url = os.getenv("STUDENT_RELAY_AWS_ENDPOINT_URL")
    env_queue_url = os.getenv("STUDENT_RELAY_QUEUE_URL")
    env_event_bus_name = os.getenv("STUDENT_RELAY_EVENT_BUS_NAME")
    env_redis_url = os.getenv("STUDENT_RELAY_REDIS_URL")

    aws_section = data.get("aws", {})
    drain_section = data.get("drain", {})
    dedupe_section = data.get("dedupe", {})

    redis_url = env_redis_url or dedupe_section.get("redis_url")
    return Settings(
        env=data.get("env", "dev"),
        aws_endpoint_url=env_endpoint_url or aws_section.get("endpoint_url"),
        aws_region=aws_section.get("region", "us-east-1"),
        aws_access_key_id=aws_section.get("access_key_id", "fake"),
        aws_secret_access_key=aws_section.get("secret_access_key", "fake"),
        event_bus_name=env_event_bus_name
        or data.get("event_bus", {}).get("name", streams.DEFAULT_EVENT_BUS_NAME),
        queue_url=env_queue_url or data.get("queue", {}).get("url", streams.DEFAULT_QUEUE_URL),
        drain_max_messages=int(drain_section.get("max_messages", 10)),
        drain_wait_seconds=int(drain_section.get("wait_seconds", 2)),
        drain_interval_seconds=int(drain_section.get("interval_seconds", 120)),
        publisher_batch_size=int(data.get("publisher", {}).get("batch_size", 20)),
        dedupe_enabled=bool(dedupe_section.get("enabled", False)) or bool(env_redis_url),
        dedupe_redis_url=redis_url,
        dedupe_ttl_seconds=int(dedupe_section.get("ttl_seconds", 24 * 3600)),
        dedupe_max_entries=int(dedupe_section.get("max_entries", 10_000)),
    )
