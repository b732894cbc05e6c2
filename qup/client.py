from __future__ import annotations

# Command-line client.
#
# A client is a short-lived process:
# - connect to broker
# - publish one request carrying the caller's token
# - wait for the correlated reply
# - print it and exit

import argparse
import json
import sys
import uuid
from typing import Any

from .mqtt_client import MqttClient
from .mqtt_topics import DEFAULT_NAMESPACE, queue_requests, queue_responses

REQUEST_TYPES = (
    "enter_queue",
    "abandon_queue",
    "vip_enter_queue",
    "change_queue_status",
    "get_queue",
    "get_slot_info",
    "get_favorite_queues",
    "toggle_favorite",
    "check_in",
    "get_online_employees",
)


def send_request(
    *,
    mqtt_host: str,
    mqtt_port: int,
    namespace: str,
    token: str,
    request_type: str,
    business_name: str | None = None,
    timeout: float = 5.0,
) -> dict[str, Any]:
    # Unique client id so several clients can run at once.
    client_id = f"client-{uuid.uuid4().hex[:12]}"
    mqtt = MqttClient(client_id=client_id, host=mqtt_host, port=mqtt_port)
    mqtt.start()

    reply_topic = queue_responses(client_id, namespace)
    mqtt.subscribe(reply_topic)

    message: dict[str, Any] = {"type": request_type, "token": token}
    if business_name:
        message["businessName"] = business_name
    try:
        return mqtt.request(
            request_topic=queue_requests(namespace),
            response_topic=reply_topic,
            message=message,
            timeout=timeout,
        )
    finally:
        mqtt.stop()


def main() -> None:
    parser = argparse.ArgumentParser(description="Queue client (MQTT)")
    parser.add_argument("request_type", choices=REQUEST_TYPES)
    parser.add_argument("--token", required=True, help="bearer token issued by the identity provider")
    parser.add_argument("--business", default=None, help="business name the request targets")
    parser.add_argument("--mqtt-host", default="127.0.0.1")
    parser.add_argument("--mqtt-port", type=int, default=1883)
    parser.add_argument("--namespace", default=DEFAULT_NAMESPACE)
    parser.add_argument("--timeout", type=float, default=5.0)
    args = parser.parse_args()

    try:
        resp = send_request(
            mqtt_host=args.mqtt_host,
            mqtt_port=args.mqtt_port,
            namespace=args.namespace,
            token=args.token,
            request_type=args.request_type,
            business_name=args.business,
            timeout=args.timeout,
        )
    except TimeoutError as e:
        print(f"[client] {e}", file=sys.stderr)
        sys.exit(2)

    print(json.dumps(resp, indent=2, sort_keys=True))
    if resp.get("type") == "error":
        sys.exit(1)


if __name__ == "__main__":
    main()
