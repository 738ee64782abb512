from __future__ import annotations

# v1 event names (frozen semantics for v1).

STUDENT_REGISTRATION_SOURCE = "com.student.registration"
STUDENT_REGISTERED_DETAIL_TYPE = "StudentRegistered"

DEFAULT_EVENT_BUS_NAME = "StudentEventBus"
DEFAULT_QUEUE_URL = "http://sqs.us-east-1.localhost.localstack.cloud:4566/000000000000/StudentEventQueue"
