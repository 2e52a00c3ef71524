"""
Habitat MQTT Schemas
====================

Bounded Context: Data Structures

Immutable, typed documents sent to the remote observation log.

Design:
- Frozen dataclasses (immutability)
- to_dict() for JSON serialization
- from_dict() for deserialization

Public API
----------
    Timestamp: ISO 8601 UTC timestamp wrapper
    ObservationPayload: One observation as delivered to the sink
    PAYLOAD_KEYS: Sink document keys, in order
"""

from .common import Timestamp
from .observation import ObservationPayload, PAYLOAD_KEYS

__all__ = [
    'Timestamp',
    'ObservationPayload',
    'PAYLOAD_KEYS',
]
