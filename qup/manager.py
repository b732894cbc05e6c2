from __future__ import annotations

# The queue service process.
#
# IMPORTANT: This file contains two layers:
# 1) `QueueService.handle_request()` (request dict in, reply dict out; easy to
#    unit test, no broker needed)
# 2) `MqttQueueService` + `main()` (integration with the MQTT broker)

import argparse
import logging
import threading
import time
from typing import Any, Callable, TYPE_CHECKING

from .errors import BAD_REQUEST, BadRequest, ErrorResponse, Outcome, UNAUTHORIZED, capture
from .identity import IdentityProvider
from .models import Actor, Business, QueueSnapshot
from .mqtt_topics import DEFAULT_NAMESPACE, business_changes, queue_requests, queue_status
from .operations import QueueOperations
from .store import BUSINESSES, DEFAULT_MAX_RETRIES, QueueStateStore

if TYPE_CHECKING:
    from .mqtt_client import MqttClient

logger = logging.getLogger(__name__)

Handler = Callable[[Actor, dict[str, Any]], Any]


def _business(msg: dict[str, Any]) -> str:
    name = msg.get("businessName")
    if not isinstance(name, str) or not name:
        raise BadRequest("businessName required")
    return name


class QueueService:
    """Maps request messages onto `QueueOperations` calls."""

    def __init__(self, operations: QueueOperations, identity: IdentityProvider) -> None:
        self.operations = operations
        self.identity = identity
        self._handlers: dict[str, Handler] = {
            "enter_queue": self._enter,
            "abandon_queue": self._abandon,
            "vip_enter_queue": self._vip_enter,
            "change_queue_status": self._change_status,
            "get_queue": self._get_queue,
            "get_slot_info": self._get_slot_info,
            "get_favorite_queues": self._get_favorites,
            "toggle_favorite": self._toggle_favorite,
            "check_in": self._check_in,
            "get_online_employees": self._get_online_employees,
        }

    def handle_request(self, msg: dict[str, Any]) -> dict[str, Any]:
        mtype = msg.get("type")
        handler = self._handlers.get(mtype) if isinstance(mtype, str) else None
        if handler is None:
            return Outcome(
                kind=BAD_REQUEST,
                error=ErrorResponse(BAD_REQUEST, f"unknown request type {mtype!r}"),
            ).to_message()

        token = msg.get("token")
        actor = self.identity.resolve(token) if isinstance(token, str) else None
        if actor is None:
            return Outcome(
                kind=UNAUTHORIZED,
                error=ErrorResponse("unauthorized", "unknown or missing token"),
            ).to_message()

        return capture(handler, actor, msg).to_message()

    # -------------------- handlers --------------------

    def _enter(self, actor: Actor, msg: dict[str, Any]) -> dict[str, Any]:
        return self.operations.enter(actor, _business(msg)).to_dict()

    def _abandon(self, actor: Actor, msg: dict[str, Any]) -> dict[str, Any]:
        name = msg.get("businessName")
        return self.operations.abandon(actor, name if isinstance(name, str) and name else None).to_dict()

    def _vip_enter(self, actor: Actor, msg: dict[str, Any]) -> dict[str, Any]:
        slot, snapshot = self.operations.vip_insert(actor, _business(msg))
        return {"vipSlot": slot.to_doc(), "queue": snapshot.to_dict()}

    def _change_status(self, actor: Actor, msg: dict[str, Any]) -> dict[str, Any]:
        return self.operations.toggle_status(actor, _business(msg)).to_dict()

    def _get_queue(self, actor: Actor, msg: dict[str, Any]) -> dict[str, Any]:
        return self.operations.queue_info(actor, _business(msg))

    def _get_slot_info(self, actor: Actor, msg: dict[str, Any]) -> dict[str, Any]:
        return self.operations.slot_info(actor)

    def _get_favorites(self, actor: Actor, msg: dict[str, Any]) -> dict[str, Any]:
        return self.operations.favorite_queues(actor)

    def _toggle_favorite(self, actor: Actor, msg: dict[str, Any]) -> dict[str, Any]:
        return {"isFavorite": self.operations.toggle_favorite(actor, _business(msg))}

    def _check_in(self, actor: Actor, msg: dict[str, Any]) -> dict[str, Any]:
        return self.operations.check_in(actor)

    def _get_online_employees(self, actor: Actor, msg: dict[str, Any]) -> dict[str, Any]:
        return self.operations.online_employees(actor, _business(msg))


class MqttQueueService:
    """MQTT adapter around `QueueService`."""

    def __init__(self, *, mqtt: MqttClient, service: QueueService, namespace: str = DEFAULT_NAMESPACE) -> None:
        self.mqtt = mqtt
        self.service = service
        self.namespace = namespace

        self._stop_event = threading.Event()
        self._status_thread: threading.Thread | None = None

    def start(self, *, publish_status_every: float = 2.0) -> None:
        self.mqtt.subscribe(queue_requests(self.namespace))
        self.mqtt.add_handler(self._handle_message)
        self.service.operations.state.add_listener(self._on_document_change)

        self._status_thread = threading.Thread(
            target=self._status_publisher_loop,
            args=(publish_status_every,),
            daemon=True,
        )
        self._status_thread.start()

    def stop(self) -> None:
        """Stop background threads. Call before disconnecting MQTT."""
        self._stop_event.set()
        t = self._status_thread
        if t and t.is_alive():
            t.join(timeout=1.0)

    def publish_status(self) -> None:
        """Broadcast one snapshot per business."""
        for name, doc in self.service.operations.state.store.scan(BUSINESSES):
            snapshot = QueueSnapshot.of(name, Business.from_doc(doc).queue)
            self.mqtt.publish(
                queue_status(name, self.namespace),
                {"type": "queue_status", "isActive": snapshot.is_active, "queueLength": snapshot.queue_length},
                retain=True,
            )

    def _status_publisher_loop(self, interval: float) -> None:
        while not self._stop_event.is_set():
            try:
                self.publish_status()
            except Exception:
                logger.exception("status broadcast failed")
            self._stop_event.wait(interval)

    def _on_document_change(self, collection: str, key: str, doc: dict[str, Any] | None) -> None:
        if collection != BUSINESSES:
            return
        payload = {"deleted": True} if doc is None else {"objectID": key, **doc}
        self.mqtt.publish(business_changes(key, self.namespace), payload)

    def _handle_message(self, topic: str, msg: dict[str, Any]) -> None:
        reply_to = msg.get("reply_to") if isinstance(msg.get("reply_to"), str) else None
        if not reply_to:
            return
        corr_id = msg.get("corr_id") if isinstance(msg.get("corr_id"), str) else None

        reply = self.service.handle_request(msg)
        if corr_id is not None:
            reply["corr_id"] = corr_id
        self.mqtt.publish(reply_to, reply)


def main() -> None:
    from .logconfig import setup_logging
    from .mqtt_client import MqttClient
    from .seed import load_seed

    parser = argparse.ArgumentParser(description="Queue service (MQTT)")
    parser.add_argument("--mqtt-host", default="127.0.0.1")
    parser.add_argument("--mqtt-port", type=int, default=1883)
    parser.add_argument("--namespace", default=DEFAULT_NAMESPACE)
    parser.add_argument("--seed", required=True, help="JSON file with businesses, users and tokens")
    parser.add_argument("--max-retries", type=int, default=DEFAULT_MAX_RETRIES, help="transaction conflict retries")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument(
        "--publish-status-every",
        type=float,
        default=2.0,
        help="seconds between queue status broadcasts",
    )
    args = parser.parse_args()

    setup_logging(args.log_level)

    state = QueueStateStore(max_retries=args.max_retries)
    identity = load_seed(args.seed, state)
    service = QueueService(QueueOperations(state), identity)

    mqtt_client = MqttClient(client_id="qup-service", host=args.mqtt_host, port=args.mqtt_port)
    mqtt_client.start()

    mqtt_service = MqttQueueService(mqtt=mqtt_client, service=service, namespace=args.namespace)
    mqtt_service.start(publish_status_every=args.publish_status_every)

    print(f"[service] connected to MQTT {args.mqtt_host}:{args.mqtt_port}, namespace={args.namespace}")

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        mqtt_service.stop()
        mqtt_client.stop()


if __name__ == "__main__":
    main()
