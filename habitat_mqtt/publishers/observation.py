"""
Observation Publisher
=====================

Bounded Context: Remote observation log (sink)

Publishes one ObservationPayload per call to the configured topic. This
is the sink used by the synchronization queue: a single outbound write
with no readable response.

Message Flow:
    SyncQueue → ObservationPayload → ObservationPublisher → MQTT Broker

Example:
    >>> logger = create_logger("publisher")
    >>> publisher = ObservationPublisher(
    ...     broker_host="localhost",
    ...     topic="habitat/observations/habitat_a",
    ...     logger=logger
    ... )
    >>> publisher.connect()
    >>> publisher.publish_observation(payload)
"""

from typing import Dict, Any, Optional
from .base import DEFAULT_RECONNECT_MAX_DELAY, DEFAULT_RECONNECT_MIN_DELAY, BasePublisher
from ..schemas import ObservationPayload
from ..logging import StructuredLogger, LogEvent


class ObservationPublisher(BasePublisher):
    """
    Publisher for observation payloads.

    Messages carry exactly the sink document keys (PAYLOAD_KEYS); the
    broker's response is never read back.
    """

    def __init__(
        self,
        broker_host: str,
        topic: str,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "habitat_observation_publisher",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 0,
        reconnect_min_delay: int = DEFAULT_RECONNECT_MIN_DELAY,
        reconnect_max_delay: int = DEFAULT_RECONNECT_MAX_DELAY,
    ):
        super().__init__(
            broker_host=broker_host,
            broker_port=broker_port,
            topic=topic,
            client_id=client_id,
            logger=logger,
            username=username,
            password=password,
            qos=qos,
            reconnect_min_delay=reconnect_min_delay,
            reconnect_max_delay=reconnect_max_delay,
        )

    def format_message(self, payload: ObservationPayload) -> Dict[str, Any]:
        """
        Format ObservationPayload to JSON-compatible dict.

        Raises:
            ValueError: If payload cannot be serialized
        """
        try:
            return payload.to_dict()

        except Exception as e:
            self.logger.error(
                event=LogEvent.SERIALIZATION_ERROR,
                message="Failed to serialize observation payload",
                exc_info=e
            )
            raise ValueError(f"Failed to format observation payload: {e}")

    def publish_observation(self, payload: ObservationPayload) -> bool:
        """
        Publish one observation.

        Returns:
            True if handed to the broker, False otherwise
        """
        try:
            return self.publish(self.format_message(payload))

        except Exception as e:
            self.logger.error(
                event=LogEvent.MQTT_PUBLISH_ERROR,
                message="Error publishing observation",
                exc_info=e,
                metadata={'topic': self.topic}
            )
            return False
