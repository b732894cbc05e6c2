"""MQTT topic helpers.

Topic construction lives here so the service and its clients agree on naming.

Layout under a configurable namespace (default: `qup/v1`):

Request/response:
- `<ns>/queues/requests`
    Every queue request goes to this single topic; the request names its
    `reply_to` topic.
- `<ns>/queues/responses/<client_id>`

Broadcast:
- `<ns>/queues/status/<business>`
    Periodic snapshot of one business's queue (length, active flag).
- `<ns>/businesses/changes/<business>`
    A copy of every committed business document, for indexers. An empty
    payload `{"deleted": true}` marks a removal.
"""

from __future__ import annotations

DEFAULT_NAMESPACE = "qup/v1"


def queue_requests(namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/queues/requests"


def queue_responses(client_id: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/queues/responses/{client_id}"


def queue_status(business_name: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/queues/status/{business_name}"


def business_changes(business_name: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/businesses/changes/{business_name}"
