"""
Session Context - the single owner of observation session state.

Holds the record store, zone registry, interval timer, settings, review
state (filters, playback, heatmap) and the storage adapter. Every state
mutation goes through this object under one re-entrant lock, so the
periodic tasks (timer, sync, playback) never interleave mid-mutation.

Public operations never raise for user errors: they return an
OperationResult with an ok flag and a human-readable message.

Thread Safety:
- threading.RLock guards records, timer, playback and settings
- ZoneRegistry has its own lock; snapshots are taken under ours
- Persistence is best-effort and happens after every mutation
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from habitat_mqtt import LogEvent, StructuredLogger, create_logger
from habitat_zone import (
    ZoneRect,
    ZoneResolver,
    clamp01,
)
from habitat_zone.analytics import (
    DEFAULT_GRID,
    HeatCell,
    PlaybackController,
    PlaybackWindow,
    RecordFilter,
    build_heatmap_grid,
    build_review_view,
    clamp_grid,
    count_by,
    playback_window,
    sort_timeline,
)
from habitat_session.catalog import (
    OBSERVER_OPTIONS,
    SITE_OPTIONS,
    Activity,
    parse_activity_or_default,
    parse_role_or_default,
)
from habitat_session.config import SessionConfig
from habitat_session.csv_codec import (
    CsvImportError,
    ImportMode,
    export_csv,
    export_filename,
    import_csv,
)
from habitat_session.interval_timer import IntervalTimer, format_hms
from habitat_session.records import (
    CloudStatus,
    ObservationRecord,
    RecordSource,
    new_record_id,
)
from habitat_session.storage import MemoryKeyValueStore, SessionStorage
from habitat_session.zones import ZoneRegistry

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def system_clock() -> int:
    """Wall clock in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class OperationResult:
    """
    Outcome of a session operation.

    Attributes:
        ok: True if the operation took effect
        message: Status text for the operator
        count: Number of records affected (imports, recompute)
        record: Captured record, if any
        zone: Created zone, if any
        missing_columns: Required CSV columns absent from an import
    """

    ok: bool
    message: str
    count: int = 0
    record: Optional[ObservationRecord] = None
    zone: Optional[ZoneRect] = None
    missing_columns: Tuple[str, ...] = ()

    @classmethod
    def success(cls, message: str, **kwargs: Any) -> "OperationResult":
        return cls(ok=True, message=message, **kwargs)

    @classmethod
    def failure(cls, message: str, **kwargs: Any) -> "OperationResult":
        return cls(ok=False, message=message, **kwargs)


@dataclass(frozen=True)
class CsvExport:
    """A rendered CSV export ready to be written."""

    filename: str
    content: str
    count: int


@dataclass
class SessionSettings:
    """Runtime-adjustable session settings (seeded from SessionConfig)."""

    observer_name: str
    building_site: str
    interval_minutes: int
    import_mode: ImportMode
    auto_send_enabled: bool

    @classmethod
    def from_config(cls, config: SessionConfig) -> "SessionSettings":
        return cls(
            observer_name=config.observer_name,
            building_site=config.building_site,
            interval_minutes=config.interval_minutes,
            import_mode=config.import_mode,
            auto_send_enabled=config.auto_send,
        )


@dataclass
class HeatmapSettings:
    enabled: bool = False
    grid: int = DEFAULT_GRID
    strength: float = 0.55


class SessionContext:
    """
    Explicit session state with init/reset lifecycle.

    Usage:
        context = SessionContext(config, SessionStorage(store))
        context.init()                  # load persisted zones/records
        context.start_timer()
        result = context.capture("1042", "engineer", "working", False, 0.3, 0.6)
        print(result.message)           # "Recorded: badge 1042 · ..."
    """

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        storage: Optional[SessionStorage] = None,
        clock: Optional[Clock] = None,
        events: Optional[StructuredLogger] = None,
    ):
        self.config = config or SessionConfig()
        self.storage = storage or SessionStorage(MemoryKeyValueStore())
        self._clock = clock or system_clock
        self.events = events or create_logger("session")

        self.settings = SessionSettings.from_config(self.config)
        self.timer = IntervalTimer(self.config.interval_minutes)
        self.zones = ZoneRegistry()

        # Review state
        self.record_filter = RecordFilter()
        self.playback = PlaybackController(speed=self.config.playback_speed)
        self.heatmap_settings = HeatmapSettings(
            enabled=self.config.heatmap.enabled,
            grid=self.config.heatmap.grid,
            strength=self.config.heatmap.strength,
        )

        self.status_message = ""
        self.last_recorded = ""

        self._records: List[ObservationRecord] = []
        self._lock = threading.RLock()

    def now(self) -> int:
        return self._clock()

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    def init(self) -> None:
        """Load persisted zones and records (best-effort)."""
        with self._lock:
            self.zones.replace_all(self.storage.load_zones())
            self._records = self.storage.load_records()
            logger.info(
                f"Session loaded: {len(self.zones)} zones, {len(self._records)} records"
            )

    def reset(self) -> OperationResult:
        """Stop the timer, clear records and disable playback. Zones are kept."""
        with self._lock:
            self.timer.reset()
            self._records = []
            self.playback.reset()
            self.last_recorded = ""
            self._persist_records()
            return self._report(OperationResult.success("Reset"))

    # ─────────────────────────────────────────────────────────────────────
    # Settings
    # ─────────────────────────────────────────────────────────────────────

    def set_observer(self, name: str) -> OperationResult:
        if name not in OBSERVER_OPTIONS:
            return OperationResult.failure(f"Unknown observer: {name}")
        with self._lock:
            self.settings.observer_name = name
        return OperationResult.success(f"Observer: {name}")

    def set_site(self, name: str) -> OperationResult:
        if name not in SITE_OPTIONS:
            return OperationResult.failure(f"Unknown site: {name}")
        with self._lock:
            self.settings.building_site = name
        return OperationResult.success(f"Site: {name}")

    def set_interval_minutes(self, minutes: int) -> OperationResult:
        with self._lock:
            try:
                self.timer.interval_minutes = minutes
            except (TypeError, ValueError) as e:
                return OperationResult.failure(f"Invalid interval: {e}")
            self.settings.interval_minutes = self.timer.interval_minutes
        return OperationResult.success(f"Interval: {self.settings.interval_minutes} min")

    def set_import_mode(self, mode: str) -> OperationResult:
        try:
            import_mode = ImportMode(mode)
        except ValueError:
            return OperationResult.failure(f"Unknown import mode: {mode}")
        with self._lock:
            self.settings.import_mode = import_mode
        return OperationResult.success(f"Import mode: {import_mode.value}")

    # ─────────────────────────────────────────────────────────────────────
    # Interval timer
    # ─────────────────────────────────────────────────────────────────────

    def start_timer(self) -> OperationResult:
        with self._lock:
            self.timer.start(self.now())
            return self._report(OperationResult.success(""))

    def pause_resume_timer(self) -> OperationResult:
        with self._lock:
            running = self.timer.pause_resume(self.now())
            return self._report(OperationResult.success("" if running else "Paused"))

    def tick_timer(self) -> bool:
        """Advance the timer; True when a new interval started."""
        with self._lock:
            rolled = self.timer.tick(self.now())
        if rolled:
            logger.info(f"Interval {self.timer.interval_index} started ({self.timer.label})")
        return rolled

    # ─────────────────────────────────────────────────────────────────────
    # Capture
    # ─────────────────────────────────────────────────────────────────────

    def capture(
        self,
        badge_number: str,
        role: Any,
        activity: Any,
        is_group: bool,
        x: float,
        y: float,
        note: str = "",
    ) -> OperationResult:
        """
        Record one live observation at plan point (x, y).

        Rejected (no mutation) when the timer is not running or the badge
        is empty. Zone is resolved from the current zone list; the initial
        cloud status is pending with auto-send on, fail with it off.
        """
        with self._lock:
            if not self.timer.is_running or self.timer.interval_start is None:
                return self._reject_capture("Press Start to begin recording.")

            badge = (badge_number or "").strip()
            if not badge:
                return self._reject_capture("Enter a badge number before recording.")

            x, y = clamp01(x), clamp01(y)
            record = ObservationRecord(
                id=new_record_id(),
                created_at=self.now(),
                interval_index=self.timer.interval_index,
                interval_label=self.timer.label,
                observer_name=self.settings.observer_name,
                building_site=self.settings.building_site,
                badge_number=badge,
                role=parse_role_or_default(role),
                activity=parse_activity_or_default(activity),
                is_group=bool(is_group),
                x=x,
                y=y,
                zone=self.zones.resolve(x, y),
                note=note or "",
                cloud_status=(
                    CloudStatus.PENDING if self.settings.auto_send_enabled else CloudStatus.FAIL
                ),
                source=RecordSource.LIVE,
            )
            self._records.append(record)
            self._persist_records()

            self.last_recorded = (
                f"Recorded: badge {record.badge_number} · {record.role.label} · "
                f"{record.activity.label} · {record.zone}"
            )
            self.events.info(
                event=LogEvent.RECORD_CAPTURED,
                message="Captured record",
                metadata={
                    'record_id': record.id,
                    'badge': record.badge_number,
                    'zone': record.zone,
                    'interval_index': record.interval_index,
                    'cloud_status': record.cloud_status.value,
                }
            )
            return self._report(OperationResult.success(self.last_recorded, count=1, record=record))

    def _reject_capture(self, message: str) -> OperationResult:
        self.events.debug(event=LogEvent.RECORD_REJECTED, message=message)
        return self._report(OperationResult.failure(message))

    # ─────────────────────────────────────────────────────────────────────
    # CSV import/export
    # ─────────────────────────────────────────────────────────────────────

    def import_csv(self, text: str, mode: Optional[str] = None) -> OperationResult:
        """
        Import CSV text as historical records.

        All-or-nothing: an empty file or missing required columns leaves
        the store untouched. On success playback is enabled at the end of
        the timeline, not playing.
        """
        with self._lock:
            try:
                import_mode = ImportMode(mode) if mode is not None else self.settings.import_mode
                imported = import_csv(text, self.zones.snapshot(), self.now)
            except CsvImportError as e:
                self.events.warning(
                    event=LogEvent.IMPORT_REJECTED,
                    message=str(e),
                    metadata={'missing_columns': e.missing_columns}
                )
                return self._report(
                    OperationResult.failure(str(e), missing_columns=tuple(e.missing_columns))
                )
            except Exception as e:
                self.events.error(
                    event=LogEvent.IMPORT_REJECTED,
                    message="CSV import failed",
                    exc_info=e
                )
                return self._report(OperationResult.failure(f"Import failed: {e}"))

            if import_mode == ImportMode.REPLACE:
                self._records = imported
            else:
                self._records.extend(imported)
            self._persist_records()

            self.playback.set_enabled(True)

            self.events.info(
                event=LogEvent.RECORDS_IMPORTED,
                message="CSV import applied",
                metadata={'count': len(imported), 'mode': import_mode.value}
            )
            return self._report(OperationResult.success(
                f"Loaded {len(imported)} markers from CSV ({import_mode.value}).",
                count=len(imported),
            ))

    def import_csv_file(self, path: Path, mode: Optional[str] = None) -> OperationResult:
        """Read a CSV file (UTF-8, optional BOM) and import it."""
        try:
            text = Path(path).read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            self.events.warning(
                event=LogEvent.IMPORT_REJECTED,
                message="Could not read CSV file",
                metadata={'path': str(path), 'error': str(e)}
            )
            return self._report(OperationResult.failure(f"Import failed: {e}"))
        return self.import_csv(text, mode)

    def export_csv(self) -> CsvExport:
        """Render every record (store order) as CSV."""
        with self._lock:
            records = list(self._records)
            interval_minutes = self.settings.interval_minutes
            now_ms = self.now()
        return CsvExport(
            filename=export_filename(now_ms),
            content=export_csv(records, interval_minutes),
            count=len(records),
        )

    def export_csv_file(self, directory: Path) -> OperationResult:
        export = self.export_csv()
        path = Path(directory) / export.filename
        try:
            path.write_text(export.content, encoding="utf-8")
        except OSError as e:
            logger.error(f"Export failed: {e}")
            return self._report(OperationResult.failure(f"Export failed: {e}"))
        self.events.info(
            event=LogEvent.RECORDS_EXPORTED,
            message="Exported records",
            metadata={'count': export.count, 'path': str(path)}
        )
        return self._report(OperationResult.success(
            f"Exported {export.count} markers to {path}.", count=export.count
        ))

    # ─────────────────────────────────────────────────────────────────────
    # Zones
    # ─────────────────────────────────────────────────────────────────────

    def add_zone_from_drag(
        self,
        name: str,
        start: Tuple[float, float],
        end: Tuple[float, float],
    ) -> OperationResult:
        """Create a zone from a drag; drags under 0.01 on either axis are ignored."""
        with self._lock:
            zone = self.zones.add_from_drag(
                zone_id=uuid.uuid4().hex,
                name=name,
                start=start,
                end=end,
                created_at=self.now(),
            )
            if zone is None:
                return OperationResult.failure("Zone too small, drag a larger rectangle.")

            self._persist_zones()
            self.events.info(
                event=LogEvent.ZONE_ADDED,
                message="Zone added",
                metadata={'zone_id': zone.id, 'name': zone.name}
            )
            return OperationResult.success(f"Added zone {zone.name}.", zone=zone)

    def delete_zone(self, zone_id: str) -> OperationResult:
        with self._lock:
            if not self.zones.delete(zone_id):
                return OperationResult.failure(f"Unknown zone: {zone_id}")
            self._persist_zones()
            self.events.info(
                event=LogEvent.ZONE_REMOVED,
                message="Zone removed",
                metadata={'zone_id': zone_id}
            )
            return OperationResult.success(f"Deleted zone {zone_id}.")

    def zone_list(self) -> List[ZoneRect]:
        """Zones newest first (resolution order)."""
        return self.zones.snapshot()

    def recompute_zones(self) -> OperationResult:
        """Re-resolve every record's zone against the current zone list."""
        with self._lock:
            self._records = ZoneResolver.recompute_all(self._records, self.zones.snapshot())
            self._persist_records()
            self.events.info(
                event=LogEvent.ZONES_RECOMPUTED,
                message="Zones recomputed",
                metadata={'records': len(self._records), 'zones': len(self.zones)}
            )
            return self._report(OperationResult.success(
                "Recomputed zones for all markers using current zone rectangles.",
                count=len(self._records),
            ))

    # ─────────────────────────────────────────────────────────────────────
    # Review
    # ─────────────────────────────────────────────────────────────────────

    def records(self) -> List[ObservationRecord]:
        """Records in store (insertion) order."""
        with self._lock:
            return list(self._records)

    def timeline(self) -> List[ObservationRecord]:
        with self._lock:
            return sort_timeline(self._records)

    def set_filter(self, **changes: Any) -> RecordFilter:
        """
        Update review filter criteria.

        Example:
            >>> context.set_filter(role="engineer", group_only=True)
        """
        if changes.get("role") is not None:
            changes["role"] = parse_role_or_default(changes["role"])
        if changes.get("activity") is not None:
            changes["activity"] = parse_activity_or_default(changes["activity"])
        with self._lock:
            self.record_filter = replace(self.record_filter, **changes)
            return self.record_filter

    def clear_filter(self) -> None:
        with self._lock:
            self.record_filter = RecordFilter()

    def review_records(self) -> List[ObservationRecord]:
        """Timeline → filters → playback cutoff."""
        with self._lock:
            return build_review_view(self._records, self.record_filter, self.playback)

    def playback_window(self) -> Optional[PlaybackWindow]:
        with self._lock:
            return playback_window(sort_timeline(self._records))

    def set_playback_enabled(self, enabled: bool) -> None:
        with self._lock:
            self.playback.set_enabled(enabled)

    def seek_playback(self, position: int) -> None:
        with self._lock:
            self.playback.seek(position)

    def set_playback_speed(self, speed: int) -> OperationResult:
        with self._lock:
            try:
                self.playback.set_speed(speed)
            except ValueError as e:
                return OperationResult.failure(str(e))
        return OperationResult.success(f"Speed {speed}x")

    def play(self) -> None:
        with self._lock:
            self.playback.play()

    def pause_playback(self) -> None:
        with self._lock:
            self.playback.pause()

    def tick_playback(self) -> int:
        """Advance playback one tick; returns the new position."""
        with self._lock:
            return self.playback.advance(playback_window(sort_timeline(self._records)))

    @property
    def playback_label(self) -> Optional[str]:
        """"Playback time: HH:MM:SS" (UTC), or None when playback has no effect."""
        with self._lock:
            cutoff = self.playback.cutoff(self.playback_window())
        if cutoff is None:
            return None
        return f"Playback time: {format_hms(cutoff)}"

    def set_heatmap(
        self,
        enabled: Optional[bool] = None,
        grid: Optional[float] = None,
        strength: Optional[float] = None,
    ) -> HeatmapSettings:
        with self._lock:
            if enabled is not None:
                self.heatmap_settings.enabled = bool(enabled)
            if grid is not None:
                self.heatmap_settings.grid = clamp_grid(grid)
            if strength is not None:
                self.heatmap_settings.strength = max(0.1, min(1.0, float(strength)))
            return self.heatmap_settings

    def heatmap(self) -> List[HeatCell]:
        """Density grid over the review view."""
        view = self.review_records()
        return build_heatmap_grid([(r.x, r.y) for r in view], self.heatmap_settings.grid)

    def legend_counts(self) -> Dict[Activity, int]:
        """Per-activity counts over the review view (every activity present)."""
        return count_by(self.review_records(), "activity", Activity)

    def interval_count(self) -> int:
        """Records tagged with the current interval index."""
        with self._lock:
            index = self.timer.interval_index
            return sum(1 for r in self._records if r.interval_index == index)

    # ─────────────────────────────────────────────────────────────────────
    # Synchronization support
    # ─────────────────────────────────────────────────────────────────────

    def next_sync_candidate(self) -> Optional[ObservationRecord]:
        """Earliest-created live record with status pending or fail."""
        with self._lock:
            for record in sort_timeline(self._records):
                if record.sync_eligible:
                    return record
        return None

    def pending_sync_count(self) -> int:
        with self._lock:
            return sum(1 for r in self._records if r.sync_eligible)

    def set_cloud_status(self, record_id: str, status: CloudStatus) -> bool:
        """
        Set a record's delivery status.

        Returns:
            False if the record no longer exists (reset or replace import)
        """
        with self._lock:
            for i, record in enumerate(self._records):
                if record.id == record_id:
                    self._records[i] = record.with_cloud_status(CloudStatus(status))
                    self._persist_records()
                    return True
        return False

    # ─────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────

    def _persist_records(self) -> None:
        self.storage.save_records(self._records)

    def _persist_zones(self) -> None:
        self.storage.save_zones(self.zones.snapshot())

    def _report(self, result: OperationResult) -> OperationResult:
        self.status_message = result.message
        return result
