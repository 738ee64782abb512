from __future__ import annotations

import json
import logging
from functools import lru_cache

from fastapi import Depends, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse
import uvicorn

from src.core.errors import InvalidInput, PublishFailed
from src.core.message_bus import EventBridgeBus
from src.core.settings import load_settings
from src.publisher.student_events import StudentEventPublisher


logger = logging.getLogger(__name__)

app = FastAPI(title="Student Event Relay API")


@lru_cache(maxsize=1)
def get_publisher() -> StudentEventPublisher:
    s = load_settings()
    return StudentEventPublisher(
        bus=EventBridgeBus.from_settings(s),
        event_bus_name=s.event_bus_name,
        batch_size=s.publisher_batch_size,
    )


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/api/PublishEvent", response_class=PlainTextResponse)
async def publish_event(
    request: Request,
    publisher: StudentEventPublisher = Depends(get_publisher),
) -> PlainTextResponse:
    logger.info("PublishEvent triggered.")
    try:
        payload = json.loads(await request.body())
        # boto3 blocks; keep it off the event loop.
        await run_in_threadpool(publisher.publish_student, payload)
    except InvalidInput as e:
        logger.warning("invalid_student_data", extra={"error": str(e)})
        return PlainTextResponse("Invalid student data.", status_code=400)
    except PublishFailed:
        logger.error("Failed to publish event.")
        return PlainTextResponse("Failed to publish event.", status_code=500)
    except Exception as e:
        logger.error(f"Error: {e}")
        return PlainTextResponse("Internal Server Error.", status_code=500)

    logger.info("Event published successfully.")
    return PlainTextResponse("Event published successfully.", status_code=200)


@app.post("/api/PublishEvent1", response_class=PlainTextResponse)
def publish_generated_events(
    publisher: StudentEventPublisher = Depends(get_publisher),
) -> PlainTextResponse:
    logger.info("PublishEvent1 triggered.")
    try:
        ack = publisher.publish_generated_batch()
    except PublishFailed:
        logger.error("Failed to publish some events.")
        return PlainTextResponse("Failed to publish some events.", status_code=500)
    except Exception as e:
        logger.error(f"Error: {e}")
        return PlainTextResponse("Internal Server Error.", status_code=500)

    logger.info("All events published successfully.")
    return PlainTextResponse(f"{ack.published} events published successfully.", status_code=200)


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    uvicorn.run(app, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
