"""
Habitat MQTT Communication Package
==================================

Bounded Context: Delivery of observations to the remote log

Architecture:
- schemas/: Immutable sink documents
- publishers/: Message producers (ObservationPublisher)
- logging/: Structured JSON logging for observability

Design Philosophy:
- Fire-and-forget: QoS 0, nothing is read back from the sink
- Immutability: frozen dataclasses for message DTOs
- Observability: Structured logs (JSON) for production queries

Public API
----------
Schemas:
    Timestamp, ObservationPayload, PAYLOAD_KEYS

Publishers:
    BasePublisher, ObservationPublisher

Logging:
    LogEvent, StructuredLogger, create_logger

Example:
    >>> from habitat_mqtt import ObservationPublisher, create_logger
    >>>
    >>> logger = create_logger("publisher")
    >>> publisher = ObservationPublisher(
    ...     broker_host="localhost",
    ...     topic="habitat/observations/habitat_a",
    ...     logger=logger
    ... )
    >>> publisher.connect()
    >>> publisher.publish_observation(payload)
"""

__version__ = "1.0.0"

# Schemas
from .schemas import (
    Timestamp,
    ObservationPayload,
    PAYLOAD_KEYS,
)

# Publishers
from .publishers import (
    BasePublisher,
    ObservationPublisher,
)

# Logging
from .logging import (
    LogEvent,
    StructuredLogger,
    create_logger,
)

__all__ = [
    '__version__',
    'Timestamp',
    'ObservationPayload',
    'PAYLOAD_KEYS',
    'BasePublisher',
    'ObservationPublisher',
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
