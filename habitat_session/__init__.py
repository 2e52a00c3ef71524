"""
habitat_session - Observation session state and orchestration

This package owns a recording session: captured and imported records,
zones, the interval timer, CSV interchange, persistence and delivery of
live records to the remote log.

Architecture:
- SessionContext: Single owner of session state (records, zones, review)
- SyncQueue: One-record-per-tick delivery with retry
- ObservationService: Periodic tasks (timer, sync, playback)
- SessionConfig: Configuration management
- SessionStorage: Best-effort persisted state

Threading Model:
- Timer Thread (our thread, 250 ms)
- Sync Thread (our thread, 1 s)
- Playback Thread (our thread, 120 ms)
- MQTT network thread (paho-mqtt internal)
"""

from habitat_session.catalog import Activity, Role
from habitat_session.config import HeatmapConfig, MQTTConfig, SessionConfig
from habitat_session.context import CsvExport, OperationResult, SessionContext
from habitat_session.csv_codec import CsvImportError, ImportMode
from habitat_session.records import CloudStatus, ObservationRecord, RecordSource
from habitat_session.service import ObservationService, PeriodicTask
from habitat_session.storage import FileKeyValueStore, MemoryKeyValueStore, SessionStorage
from habitat_session.sync import SyncQueue, SyncLoopStatus, build_payload

__all__ = [
    "Activity",
    "Role",
    "HeatmapConfig",
    "MQTTConfig",
    "SessionConfig",
    "CsvExport",
    "OperationResult",
    "SessionContext",
    "CsvImportError",
    "ImportMode",
    "CloudStatus",
    "ObservationRecord",
    "RecordSource",
    "ObservationService",
    "PeriodicTask",
    "FileKeyValueStore",
    "MemoryKeyValueStore",
    "SessionStorage",
    "SyncQueue",
    "SyncLoopStatus",
    "build_payload",
]
