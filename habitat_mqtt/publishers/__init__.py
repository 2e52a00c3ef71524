"""
MQTT Publishers
==============

Bounded Context: Message Production

Design:
- BasePublisher: Abstract base with connection management
- ObservationPublisher: Publishes observation payloads (the sync sink)

Example:
    >>> from habitat_mqtt.publishers import ObservationPublisher
    >>> from habitat_mqtt.logging import create_logger
    >>>
    >>> publisher = ObservationPublisher(
    ...     broker_host="localhost",
    ...     topic="habitat/observations/habitat_a",
    ...     logger=create_logger("publisher")
    ... )
    >>> publisher.connect()
"""

from .base import BasePublisher
from .observation import ObservationPublisher

__all__ = [
    'BasePublisher',
    'ObservationPublisher',
]
