from __future__ import annotations

from dataclasses import dataclass
from datetime import timezone
from typing import Any, Optional, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from .errors import TransientInfrastructureError
from .models import EventEnvelope, QueueMessage
from .settings import Settings


class EventBus:
    """Abstraction for the publish side of the relay."""

    def put_events(self, envelopes: Sequence[EventEnvelope]) -> "PutEventsResult":  # pragma: no cover
        raise NotImplementedError


class MessageQueue:
    """Abstraction for the consume side of the relay."""

    def receive(self, *, max_messages: int, wait_seconds: int) -> list[QueueMessage]:  # pragma: no cover
        raise NotImplementedError

    def delete(self, receipt_handle: str) -> None:  # pragma: no cover
        raise NotImplementedError


@dataclass(frozen=True)
class PutEventsResult:
    entry_count: int
    failed_entry_count: int


def envelope_to_entry(event: EventEnvelope) -> dict[str, Any]:
    """Convert an EventEnvelope to a PutEvents request entry."""

    time = event.time
    if time.tzinfo is None:
        time = time.replace(tzinfo=timezone.utc)
    return {
        "Source": event.source,
        "DetailType": event.detail_type,
        "Detail": event.detail,
        "EventBusName": event.event_bus_name,
        "Time": time,
    }


def _client_kwargs(
    *,
    endpoint_url: Optional[str],
    region_name: str,
    aws_access_key_id: Optional[str],
    aws_secret_access_key: Optional[str],
) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"region_name": region_name}
    if endpoint_url:
        kwargs["endpoint_url"] = endpoint_url
    if aws_access_key_id and aws_secret_access_key:
        kwargs["aws_access_key_id"] = aws_access_key_id
        kwargs["aws_secret_access_key"] = aws_secret_access_key
    return kwargs


class EventBridgeBus(EventBus):
    """EventBridge implementation. The boto3 client is created on first use."""

    def __init__(
        self,
        *,
        endpoint_url: Optional[str] = None,
        region_name: str = "us-east-1",
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        client=None,
    ):
        self._client = client
        self._client_kwargs = _client_kwargs(
            endpoint_url=endpoint_url,
            region_name=region_name,
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key,
        )

    @classmethod
    def from_settings(cls, s: Settings) -> "EventBridgeBus":
        return cls(
            endpoint_url=s.aws_endpoint_url,
            region_name=s.aws_region,
            aws_access_key_id=s.aws_access_key_id,
            aws_secret_access_key=s.aws_secret_access_key,
        )

    def _get_client(self):
        if self._client is None:
            import boto3  # type: ignore

            self._client = boto3.client("events", **self._client_kwargs)
        return self._client

    def put_events(self, envelopes: Sequence[EventEnvelope]) -> PutEventsResult:
        entries = [envelope_to_entry(ev) for ev in envelopes]
        try:
            resp = self._get_client().put_events(Entries=entries)
        except (BotoCoreError, ClientError) as e:
            raise TransientInfrastructureError(f"put_events failed: {e}") from e
        return PutEventsResult(
            entry_count=len(entries),
            failed_entry_count=int(resp.get("FailedEntryCount", 0) or 0),
        )


class SqsQueue(MessageQueue):
    """SQS implementation bound to a single queue URL."""

    def __init__(
        self,
        queue_url: str,
        *,
        endpoint_url: Optional[str] = None,
        region_name: str = "us-east-1",
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        client=None,
    ):
        self.queue_url = queue_url
        self._client = client
        self._client_kwargs = _client_kwargs(
            endpoint_url=endpoint_url,
            region_name=region_name,
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key,
        )

    @classmethod
    def from_settings(cls, s: Settings) -> "SqsQueue":
        return cls(
            s.queue_url,
            endpoint_url=s.aws_endpoint_url,
            region_name=s.aws_region,
            aws_access_key_id=s.aws_access_key_id,
            aws_secret_access_key=s.aws_secret_access_key,
        )

    def _get_client(self):
        if self._client is None:
            import boto3  # type: ignore

            self._client = boto3.client("sqs", **self._client_kwargs)
        return self._client

    def receive(self, *, max_messages: int, wait_seconds: int) -> list[QueueMessage]:
        try:
            resp = self._get_client().receive_message(
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=max_messages,
                WaitTimeSeconds=wait_seconds,
            )
        except (BotoCoreError, ClientError) as e:
            raise TransientInfrastructureError(f"receive_message failed: {e}") from e
        return [
            QueueMessage(
                message_id=m.get("MessageId", ""),
                body=m.get("Body", ""),
                receipt_handle=m["ReceiptHandle"],
            )
            for m in resp.get("Messages", [])
        ]

    def delete(self, receipt_handle: str) -> None:
        try:
            self._get_client().delete_message(QueueUrl=self.queue_url, ReceiptHandle=receipt_handle)
        except (BotoCoreError, ClientError) as e:
            raise TransientInfrastructureError(f"delete_message failed: {e}") from e
