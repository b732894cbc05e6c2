"""JSON-over-MQTT helper built on paho-mqtt.

paho-mqtt delivers messages through callbacks on its own network thread.
`MqttClient` wraps that with:
- JSON encode/decode of payloads
- a list of (topic, message) handlers for the service side
- `request()`, a blocking call that publishes with a fresh `corr_id` and waits
  for the reply carrying the same id (the client side)

Subscriptions are remembered and replayed on reconnect.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
import uuid
from typing import Any, Callable

import paho.mqtt.client as mqtt

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str, dict[str, Any]], None]


class MqttClient:
    def __init__(
        self,
        *,
        client_id: str,
        host: str,
        port: int,
        keepalive: int = 30,
    ) -> None:
        self.client_id = client_id
        self.host = host
        self.port = port
        self.keepalive = keepalive

        self._client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            clean_session=True,
        )
        self._client.on_connect = self._on_connect
        self._client.on_message = self._on_message

        self._handlers: list[MessageHandler] = []
        self._topics: set[str] = set()

        # corr_id -> single-slot mailbox for request()
        self._waiting: dict[str, "queue.Queue[dict[str, Any]]"] = {}
        self._lock = threading.Lock()

        self._started = False

    def start(self) -> None:
        """Connect and run the network loop in the background."""
        if self._started:
            return
        self._client.connect(self.host, self.port, keepalive=self.keepalive)
        self._client.loop_start()
        self._started = True

    def stop(self) -> None:
        if not self._started:
            return
        self._client.loop_stop()
        self._client.disconnect()
        self._started = False

    def add_handler(self, handler: MessageHandler) -> None:
        self._handlers.append(handler)

    def subscribe(self, topic: str) -> None:
        with self._lock:
            self._topics.add(topic)
        self._client.subscribe(topic, qos=1)

    def publish(self, topic: str, message: dict[str, Any], *, retain: bool = False) -> None:
        payload = json.dumps(message, separators=(",", ":")).encode("utf-8")
        self._client.publish(topic, payload=payload, qos=1, retain=retain)

    def request(
        self,
        *,
        request_topic: str,
        response_topic: str,
        message: dict[str, Any],
        timeout: float = 5.0,
    ) -> dict[str, Any]:
        """Publish `message` and block until the correlated reply arrives.

        The caller must already be subscribed to `response_topic`.

        Raises:
            TimeoutError: no reply within `timeout` seconds.
        """
        corr_id = uuid.uuid4().hex
        mailbox: "queue.Queue[dict[str, Any]]" = queue.Queue(maxsize=1)
        with self._lock:
            self._waiting[corr_id] = mailbox

        self.publish(request_topic, {**message, "corr_id": corr_id, "reply_to": response_topic})
        try:
            return mailbox.get(timeout=timeout)
        except queue.Empty as e:
            raise TimeoutError(f"no reply to {message.get('type')} (corr_id={corr_id})") from e
        finally:
            with self._lock:
                self._waiting.pop(corr_id, None)

    # -------------------- paho callbacks --------------------

    def _on_connect(self, client: mqtt.Client, userdata: Any, flags: Any, reason_code: Any, properties: Any) -> None:
        if reason_code.is_failure:
            logger.error("%s: connect to %s:%d refused: %s", self.client_id, self.host, self.port, reason_code)
            return
        with self._lock:
            topics = list(self._topics)
        for topic in topics:
            client.subscribe(topic, qos=1)
        logger.debug("%s: connected, %d subscriptions restored", self.client_id, len(topics))

    def _on_message(self, client: mqtt.Client, userdata: Any, msg: mqtt.MQTTMessage) -> None:
        try:
            data = json.loads(msg.payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("%s: dropping malformed payload on %s", self.client_id, msg.topic)
            return
        if not isinstance(data, dict):
            logger.warning("%s: dropping non-object payload on %s", self.client_id, msg.topic)
            return

        corr_id = data.get("corr_id")
        if isinstance(corr_id, str):
            with self._lock:
                mailbox = self._waiting.get(corr_id)
            if mailbox is not None:
                try:
                    mailbox.put_nowait(data)
                except queue.Full:
                    logger.debug("%s: duplicate reply for %s", self.client_id, corr_id)
                return

        for handler in list(self._handlers):
            try:
                handler(msg.topic, data)
            except Exception:
                # One bad message must not kill the network thread.
                logger.exception("%s: handler failed on %s", self.client_id, msg.topic)
