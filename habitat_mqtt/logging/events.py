"""
Structured Log Event Types
==========================

Bounded Context: Observability Event Taxonomy

Typed event names for structured logging.

Event Naming Convention:
    <component>.<category>.<action>

    component: mqtt, sync, record, zone, error
    category: publish, delivery, import
    action: success, failed

Example Log Query (CloudWatch Insights):
    fields @timestamp, event, message, metadata.record_id
    | filter event = "sync.delivery.failed"
    | stats count() by bin(5m)
"""

from enum import Enum


class LogEvent(str, Enum):
    """
    Typed log event names for structured logging.

    Categories:
    - mqtt.*: MQTT broker interactions
    - sync.*: Synchronization queue
    - record.*: Record capture and import
    - zone.*: Zone edits
    - error.*: Error conditions
    """

    # ========== MQTT Events ==========
    MQTT_CONNECTED = "mqtt.connected"
    """MQTT broker connection established."""

    MQTT_DISCONNECTED = "mqtt.disconnected"
    """MQTT broker connection lost."""

    MQTT_PUBLISH_SUCCESS = "mqtt.publish.success"
    """Message handed to the broker."""

    MQTT_PUBLISH_FAILED = "mqtt.publish.failed"
    """Message publication failed."""

    # ========== Sync Events ==========
    SYNC_ENABLED = "sync.enabled"
    """Auto-send switched on."""

    SYNC_DISABLED = "sync.disabled"
    """Auto-send switched off."""

    SYNC_ATTEMPT = "sync.delivery.attempt"
    """Delivery attempt started for one record."""

    SYNC_DELIVERED = "sync.delivery.success"
    """Record delivered (status ok)."""

    SYNC_FAILED = "sync.delivery.failed"
    """Delivery failed (status fail, will retry)."""

    # ========== Record Events ==========
    RECORD_CAPTURED = "record.captured"
    """Live record captured."""

    RECORD_REJECTED = "record.rejected"
    """Capture rejected by validation."""

    RECORDS_IMPORTED = "record.import.success"
    """CSV import applied to the store."""

    IMPORT_REJECTED = "record.import.rejected"
    """CSV import rejected (empty file, missing columns, read error)."""

    RECORDS_EXPORTED = "record.export.success"
    """Store exported to CSV."""

    # ========== Zone Events ==========
    ZONE_ADDED = "zone.added"
    """Zone rectangle created."""

    ZONE_REMOVED = "zone.removed"
    """Zone rectangle deleted."""

    ZONES_RECOMPUTED = "zone.recomputed"
    """Zones reassigned on every record."""

    # ========== Error Events ==========
    SERIALIZATION_ERROR = "error.serialization"
    """Failed to serialize payload to JSON."""

    MQTT_CONNECTION_ERROR = "error.mqtt_connection"
    """Failed to connect to MQTT broker."""

    MQTT_PUBLISH_ERROR = "error.mqtt_publish"
    """Error during message publication."""


# Event categories for filtering
MQTT_EVENTS = {
    LogEvent.MQTT_CONNECTED,
    LogEvent.MQTT_DISCONNECTED,
    LogEvent.MQTT_PUBLISH_SUCCESS,
    LogEvent.MQTT_PUBLISH_FAILED,
}

SYNC_EVENTS = {
    LogEvent.SYNC_ENABLED,
    LogEvent.SYNC_DISABLED,
    LogEvent.SYNC_ATTEMPT,
    LogEvent.SYNC_DELIVERED,
    LogEvent.SYNC_FAILED,
}

RECORD_EVENTS = {
    LogEvent.RECORD_CAPTURED,
    LogEvent.RECORD_REJECTED,
    LogEvent.RECORDS_IMPORTED,
    LogEvent.IMPORT_REJECTED,
    LogEvent.RECORDS_EXPORTED,
}

ZONE_EVENTS = {
    LogEvent.ZONE_ADDED,
    LogEvent.ZONE_REMOVED,
    LogEvent.ZONES_RECOMPUTED,
}

ERROR_EVENTS = {
    LogEvent.SERIALIZATION_ERROR,
    LogEvent.MQTT_CONNECTION_ERROR,
    LogEvent.MQTT_PUBLISH_ERROR,
}
