"""
Publisher base: one paho-mqtt client per sink topic.

The network loop owns the connection. connect() only schedules it
(connect_async + loop_start), so an unreachable broker is retried in the
background with the configured backoff instead of failing once and for
all. publish() never blocks on the broker: while the link is down it
fails fast and the caller keeps the message for a later attempt.

Delivery is QoS 0 by default. A True result means paho accepted the
frame for sending; nothing comes back from the broker.
"""

import json
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import paho.mqtt.client as mqtt

from ..logging import LogEvent, StructuredLogger

DEFAULT_RECONNECT_MIN_DELAY = 1
DEFAULT_RECONNECT_MAX_DELAY = 30


@dataclass
class _Counters:
    sent: int = 0
    failed: int = 0


class BasePublisher(ABC):
    """
    Connection lifecycle and JSON publishing for a single topic.

    Subclasses turn their domain object into a dict in format_message().
    Counters are guarded by a lock because paho callbacks run on the
    network thread while publish() runs on the caller's.
    """

    def __init__(
        self,
        broker_host: str,
        broker_port: int,
        topic: str,
        client_id: str,
        logger: StructuredLogger,
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 0,
        reconnect_min_delay: int = DEFAULT_RECONNECT_MIN_DELAY,
        reconnect_max_delay: int = DEFAULT_RECONNECT_MAX_DELAY,
    ):
        if reconnect_min_delay <= 0 or reconnect_max_delay < reconnect_min_delay:
            raise ValueError(
                f"Invalid reconnect delays: min={reconnect_min_delay}, max={reconnect_max_delay}"
            )

        self.broker_host = broker_host
        self.broker_port = broker_port
        self.topic = topic
        self.client_id = client_id
        self.logger = logger
        self.qos = qos

        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)
        if username and password:
            self.client.username_pw_set(username, password)
        self.client.reconnect_delay_set(min_delay=reconnect_min_delay, max_delay=reconnect_max_delay)

        self.client.on_connect = self._handle_connect
        self.client.on_connect_fail = self._handle_connect_fail
        self.client.on_disconnect = self._handle_disconnect

        self._connected = threading.Event()
        self._loop_started = False
        self._lifecycle_lock = threading.Lock()
        self._counters = _Counters()
        self._counters_lock = threading.Lock()

    @property
    def broker(self) -> str:
        return f"{self.broker_host}:{self.broker_port}"

    # ─────────────────────────────────────────────────────────────────────
    # paho callbacks (network thread)
    # ─────────────────────────────────────────────────────────────────────

    def _handle_connect(self, client, userdata, flags, reason_code, properties=None) -> None:
        if reason_code.is_failure:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"Broker refused connection ({reason_code})",
                metadata={'broker': self.broker}
            )
            return

        self._connected.set()
        self.logger.info(
            event=LogEvent.MQTT_CONNECTED,
            message="Broker link up",
            metadata={'broker': self.broker, 'client_id': self.client_id, 'topic': self.topic}
        )

    def _handle_connect_fail(self, client, userdata) -> None:
        self.logger.warning(
            event=LogEvent.MQTT_CONNECTION_ERROR,
            message="Broker unreachable, retrying in background",
            metadata={'broker': self.broker}
        )

    def _handle_disconnect(self, client, userdata, flags, reason_code, properties=None) -> None:
        self._connected.clear()
        self.logger.warning(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Broker link down",
            metadata={'broker': self.broker, 'reason_code': str(reason_code)}
        )

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    def connect(self, timeout: float = 10.0) -> bool:
        """
        Start the network loop and wait up to `timeout` seconds for the link.

        Returns False if the broker did not answer in time. The loop keeps
        retrying after that, so a later wait_connected() or publish() can
        still succeed.
        """
        with self._lifecycle_lock:
            if not self._loop_started:
                try:
                    self.client.connect_async(self.broker_host, self.broker_port)
                except (OSError, ValueError) as e:
                    self.logger.error(
                        event=LogEvent.MQTT_CONNECTION_ERROR,
                        message="Invalid broker address",
                        exc_info=e,
                        metadata={'broker': self.broker}
                    )
                    return False
                self.client.loop_start()
                self._loop_started = True

        if self.wait_connected(timeout):
            return True

        self.logger.warning(
            event=LogEvent.MQTT_CONNECTION_ERROR,
            message="No broker link yet",
            metadata={'broker': self.broker, 'timeout': timeout}
        )
        return False

    def wait_connected(self, timeout: Optional[float] = None) -> bool:
        return self._connected.wait(timeout=timeout)

    def is_connected(self) -> bool:
        return self._connected.is_set()

    def disconnect(self) -> None:
        """Send DISCONNECT (if linked) and stop the network loop."""
        with self._lifecycle_lock:
            if not self._loop_started:
                return
            self.client.disconnect()
            self.client.loop_stop()
            self._loop_started = False
            self._connected.clear()

        with self._counters_lock:
            sent = self._counters.sent
        self.logger.info(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Publisher stopped",
            metadata={'broker': self.broker, 'message_count': sent}
        )

    # ─────────────────────────────────────────────────────────────────────
    # Publishing
    # ─────────────────────────────────────────────────────────────────────

    @abstractmethod
    def format_message(self, *args, **kwargs) -> Dict[str, Any]:
        """Build the JSON-ready document for one message."""

    def _count(self, ok: bool) -> int:
        with self._counters_lock:
            if ok:
                self._counters.sent += 1
                return self._counters.sent
            self._counters.failed += 1
            return self._counters.failed

    def publish(self, message_data: Dict[str, Any], retain: bool = False) -> bool:
        """Serialize `message_data` and hand it to paho. Never raises."""
        if not self._connected.is_set():
            self._count(False)
            self.logger.warning(
                event=LogEvent.MQTT_PUBLISH_FAILED,
                message="Not sent: no broker link",
                metadata={'topic': self.topic}
            )
            return False

        try:
            info = self.client.publish(
                topic=self.topic,
                payload=json.dumps(message_data),
                qos=self.qos,
                retain=retain
            )
        except (TypeError, ValueError, OSError) as e:
            self._count(False)
            self.logger.error(
                event=LogEvent.MQTT_PUBLISH_ERROR,
                message="Not sent: publish raised",
                exc_info=e,
                metadata={'topic': self.topic}
            )
            return False

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self._count(False)
            self.logger.warning(
                event=LogEvent.MQTT_PUBLISH_FAILED,
                message=f"Not sent: {mqtt.error_string(info.rc)}",
                metadata={'topic': self.topic, 'rc': info.rc}
            )
            return False

        sent = self._count(True)
        self.logger.info(
            event=LogEvent.MQTT_PUBLISH_SUCCESS,
            message="Sent",
            metadata={'topic': self.topic, 'message_count': sent, 'qos': self.qos}
        )
        return True

    def get_stats(self) -> Dict[str, Any]:
        with self._counters_lock:
            sent, failed = self._counters.sent, self._counters.failed
        return {
            'message_count': sent,
            'failure_count': failed,
            'connected': self._connected.is_set(),
            'topic': self.topic,
            'broker': self.broker,
        }
