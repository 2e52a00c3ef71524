"""
Session context tests: capture, import, zones, persistence and timer.
"""

import json

import pytest

from habitat_mqtt import LogEvent, StructuredLogger
from habitat_mqtt.logging.events import RECORD_EVENTS, ZONE_EVENTS
from habitat_session import (
    FileKeyValueStore,
    MemoryKeyValueStore,
    SessionConfig,
    SessionContext,
    SessionStorage,
)
from habitat_session.catalog import Activity, Role, parse_activity_or_default, parse_role_or_default
from habitat_session.config import HeatmapConfig, MQTTConfig
from habitat_session.csv_codec import ImportMode, REQUIRED_COLUMNS
from habitat_session.interval_timer import IntervalTimer
from habitat_session.records import CloudStatus, ObservationRecord, RecordSource
from habitat_session.storage import RECORDS_KEY, ZONES_KEY

START = 1_700_000_000_000  # 2023-11-14T22:13:20Z


class FakeClock:
    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


def make_context(store=None, clock=None, **config):
    return SessionContext(
        SessionConfig(**config),
        SessionStorage(store if store is not None else MemoryKeyValueStore()),
        clock=clock or FakeClock(),
    )


def _csv(rows):
    header = ",".join(REQUIRED_COLUMNS)
    lines = [header]
    for created_at_iso, badge in rows:
        lines.append(
            f"{created_at_iso},Observer 1,Habitat A,5,0,—,{badge},pilot,reading,0,0.5,0.5,Bridge,"
        )
    return "\n".join(lines)


# ─────────────────────────────────────────────────────────────────────────────
# Catalog
# ─────────────────────────────────────────────────────────────────────────────

def test_enum_coercion_is_total():
    assert parse_role_or_default(" pilot ") == Role.PILOT
    assert parse_role_or_default("alien") == Role.VISITOR_OTHER
    assert parse_role_or_default(None) == Role.VISITOR_OTHER
    assert parse_activity_or_default("flying") == Activity.WALKING
    assert parse_activity_or_default("") == Activity.WALKING
    assert parse_activity_or_default(Activity.MEAL) == Activity.MEAL


def test_activity_palette():
    color = Activity.WALKING.color

    assert (color.r, color.g, color.b) == (0x1f, 0x77, 0xb4)
    assert Activity.MEAL.label == "Meal / hydration"
    assert Role.MISSION_CONTROL.label == "Mission control"


# ─────────────────────────────────────────────────────────────────────────────
# Capture
# ─────────────────────────────────────────────────────────────────────────────

def test_capture_requires_running_timer():
    context = make_context()

    result = context.capture("42", "engineer", "walking", False, 0.5, 0.5)

    assert result.ok is False
    assert result.message == "Press Start to begin recording."
    assert context.records() == []


def test_capture_requires_badge():
    context = make_context()
    context.start_timer()

    result = context.capture("   ", "engineer", "walking", False, 0.5, 0.5)

    assert result.ok is False
    assert result.message == "Enter a badge number before recording."
    assert context.status_message == result.message
    assert context.records() == []


def test_capture_builds_live_record():
    clock = FakeClock()
    context = make_context(clock=clock)
    context.add_zone_from_drag("Galley", (0.1, 0.1), (0.4, 0.5))
    context.start_timer()
    clock.advance(1500)

    result = context.capture(" 42 ", "engineer", "walking", True, 0.2, 0.3, note="by the sink")

    record = result.record
    assert result.ok is True
    assert record.badge_number == "42"
    assert record.created_at == START + 1500
    assert record.zone == "Galley"
    assert record.is_group is True
    assert record.cloud_status == CloudStatus.PENDING
    assert record.source == RecordSource.LIVE
    assert record.interval_index == 0
    assert record.interval_label == "22:13–22:18"
    assert record.observer_name == "Observer 1"
    assert record.note == "by the sink"
    assert context.last_recorded == "Recorded: badge 42 · Engineer · Walking · Galley"


def test_capture_with_auto_send_off_starts_failed():
    context = make_context(auto_send=False)
    context.start_timer()

    record = context.capture("42", "medic", "meal", False, 0.5, 0.5).record

    assert record.cloud_status == CloudStatus.FAIL


def test_capture_clamps_coordinates_and_coerces_enums():
    context = make_context()
    context.start_timer()

    record = context.capture("7", "alien", "flying", False, 1.5, -0.2).record

    assert (record.x, record.y) == (1.0, 0.0)
    assert record.role == Role.VISITOR_OTHER
    assert record.activity == Activity.WALKING
    assert record.zone == "Unassigned"


def test_settings_are_validated():
    context = make_context()

    assert context.set_observer("Observer 3").ok is True
    assert context.settings.observer_name == "Observer 3"
    assert context.set_observer("Nobody").ok is False
    assert context.set_site("Lab Module").ok is True
    assert context.set_site("Mars").ok is False
    assert context.set_interval_minutes(0).ok is False
    assert context.set_interval_minutes(10).ok is True
    assert context.timer.interval_seconds == 600
    assert context.set_import_mode("merge").ok is False


# ─────────────────────────────────────────────────────────────────────────────
# Import / export
# ─────────────────────────────────────────────────────────────────────────────

def test_import_missing_column_leaves_store_untouched():
    context = make_context()
    context.start_timer()
    context.capture("42", "engineer", "walking", False, 0.5, 0.5)
    before = context.records()

    header = [c for c in REQUIRED_COLUMNS if c != "role"]
    text = ",".join(header) + "\n" + ",".join(["1"] * len(header))
    result = context.import_csv(text)

    assert result.ok is False
    assert "role" in result.missing_columns
    assert result.message == "CSV missing columns: role"
    assert context.records() == before
    assert context.playback.enabled is False


def test_import_replace_and_append():
    context = make_context()
    context.start_timer()
    context.capture("42", "engineer", "walking", False, 0.5, 0.5)

    text = _csv([("2023-11-14T20:00:00.000Z", "1"), ("2023-11-14T21:00:00.000Z", "2")])

    result = context.import_csv(text, mode="append")
    assert result.ok is True
    assert result.message == "Loaded 2 markers from CSV (append)."
    assert len(context.records()) == 3

    result = context.import_csv(text, mode=ImportMode.REPLACE)
    assert result.message == "Loaded 2 markers from CSV (replace)."
    assert [r.badge_number for r in context.records()] == ["1", "2"]
    assert all(r.source == RecordSource.IMPORT for r in context.records())


def test_import_enables_playback_at_end():
    context = make_context()
    context.playback.seek(300)

    context.import_csv(_csv([("2023-11-14T20:00:00.000Z", "1"), ("2023-11-14T21:00:00.000Z", "2")]))

    assert context.playback.enabled is True
    assert context.playback.position == 1000
    assert context.playback.playing is False
    assert context.playback_label == "Playback time: 21:00:00"


def test_import_never_raises():
    context = make_context()

    empty = context.import_csv("")
    assert empty.ok is False
    assert empty.message == "CSV looks empty."

    broken = context.import_csv(None)
    assert broken.ok is False
    assert broken.message.startswith("Import failed:")

    missing = context.import_csv_file("/nonexistent/observations.csv")
    assert missing.ok is False
    assert missing.message.startswith("Import failed:")


def test_import_with_unrenderable_timestamp_keeps_export_working():
    context = make_context()

    result = context.import_csv(_csv([
        ("0001-01-01T00:00:00+01:00", "early"),
        ("9999-12-31T23:59:59-01:00", "late"),
    ]))

    assert result.ok is True
    assert [r.created_at for r in context.records()] == [START, START]
    export = context.export_csv()
    assert export.count == 2
    assert export.content.count("2023-11-14T22:13:20.000Z") == 2
    assert context.playback_label == "Playback time: 22:13:20"


def test_export_csv_file(tmp_path):
    context = make_context()
    context.start_timer()
    context.capture("42", "engineer", "walking", False, 0.5, 0.5)

    result = context.export_csv_file(tmp_path)

    path = tmp_path / "mission_observations_2023-11-14.csv"
    assert result.ok is True
    assert path.exists()
    lines = path.read_text(encoding="utf-8").split("\n")
    assert len(lines) == 2
    assert lines[1].endswith(",pending,live")


def test_import_file_with_bom(tmp_path):
    path = tmp_path / "obs.csv"
    path.write_text("\ufeff" + _csv([("2023-11-14T20:00:00.000Z", "1")]), encoding="utf-8")

    result = make_context().import_csv_file(path)

    assert result.ok is True
    assert result.count == 1


# ─────────────────────────────────────────────────────────────────────────────
# Zones
# ─────────────────────────────────────────────────────────────────────────────

def test_zone_edits_do_not_rewrite_history_until_recompute():
    context = make_context()
    context.start_timer()
    context.capture("42", "engineer", "walking", False, 0.2, 0.2)

    added = context.add_zone_from_drag("Galley", (0.1, 0.1), (0.4, 0.4))
    assert added.ok is True
    assert context.records()[0].zone == "Unassigned"

    result = context.recompute_zones()
    assert result.message == "Recomputed zones for all markers using current zone rectangles."
    assert context.records()[0].zone == "Galley"

    assert context.delete_zone(added.zone.id).ok is True
    assert context.delete_zone(added.zone.id).ok is False
    context.recompute_zones()
    assert context.records()[0].zone == "Unassigned"


def test_small_zone_drag_is_rejected():
    context = make_context()

    result = context.add_zone_from_drag("Tiny", (0.1, 0.1), (0.105, 0.5))

    assert result.ok is False
    assert context.zone_list() == []


# ─────────────────────────────────────────────────────────────────────────────
# Review
# ─────────────────────────────────────────────────────────────────────────────

def test_review_filters_heatmap_and_legend():
    context = make_context()
    context.start_timer()
    context.capture("A-1", "pilot", "meal", False, 0.51, 0.51)
    context.capture("A-2", "pilot", "meal", True, 0.51, 0.51)
    context.capture("B-3", "medic", "reading", True, 0.05, 0.05)

    context.set_filter(role="pilot")
    assert [r.badge_number for r in context.review_records()] == ["A-1", "A-2"]

    context.set_heatmap(grid=20)
    cells = context.heatmap()
    assert len(cells) == 1
    assert (cells[0].gx, cells[0].gy, cells[0].count, cells[0].norm) == (10, 10, 2, 1.0)

    legend = context.legend_counts()
    assert legend[Activity.MEAL] == 2
    assert legend[Activity.READING] == 0

    context.clear_filter()
    context.set_filter(group_only=True, badge_query="b")
    assert [r.badge_number for r in context.review_records()] == ["B-3"]


def test_heatmap_settings_are_clamped():
    context = make_context()

    settings = context.set_heatmap(enabled=True, grid=1000, strength=5)

    assert settings.enabled is True
    assert settings.grid == 200
    assert settings.strength == 1.0


def test_heatmap_grid_ignores_non_finite_values():
    context = make_context()

    assert context.set_heatmap(grid=float("nan")).grid == 60
    assert context.set_heatmap(grid=25).grid == 25
    assert context.set_heatmap(grid=float("inf")).grid == 60


def test_tick_playback_advances_over_timeline():
    context = make_context()
    context.import_csv(_csv([("2023-11-14T20:00:00.000Z", "1"), ("2023-11-14T20:00:01.200Z", "2")]))
    context.seek_playback(0)
    context.play()

    # 1200 ms window, speed 2: 240 ms per tick
    assert context.tick_playback() == 200
    assert [r.badge_number for r in context.review_records()] == ["1"]

    for _ in range(4):
        context.tick_playback()
    assert context.playback.position == 1000
    assert context.playback.playing is False
    assert len(context.review_records()) == 2


# ─────────────────────────────────────────────────────────────────────────────
# Interval timer
# ─────────────────────────────────────────────────────────────────────────────

def test_interval_timer_rolls_over():
    timer = IntervalTimer(interval_minutes=5)
    assert timer.label == "—"
    assert timer.tick(START) is False

    timer.start(START)
    assert timer.timer_text == "5:00"
    assert timer.label == "22:13–22:18"

    assert timer.tick(START + 61_000) is False
    assert timer.timer_text == "3:59"

    assert timer.tick(START + 300_000) is True
    assert timer.interval_index == 1
    assert timer.label == "22:18–22:23"
    assert timer.timer_text == "5:00"


def test_interval_timer_pause_resume_and_reset():
    timer = IntervalTimer(interval_minutes=1)
    timer.start(START)

    assert timer.pause_resume(START + 10_000) is False
    assert timer.tick(START + 120_000) is False

    assert timer.pause_resume(START + 120_000) is True
    assert timer.interval_start == START + 120_000
    assert timer.interval_index == 0

    timer.reset()
    assert timer.is_running is False
    assert timer.label == "—"

    with pytest.raises(ValueError):
        IntervalTimer(interval_minutes=0)


def test_interval_count_tracks_current_interval():
    clock = FakeClock()
    context = make_context(clock=clock)
    context.start_timer()
    context.capture("1", "pilot", "walking", False, 0.5, 0.5)
    context.capture("2", "pilot", "walking", False, 0.5, 0.5)
    assert context.interval_count() == 2

    clock.advance(300_000)
    assert context.tick_timer() is True
    assert context.interval_count() == 0

    record = context.capture("3", "pilot", "walking", False, 0.5, 0.5).record
    assert record.interval_index == 1
    assert context.interval_count() == 1


# ─────────────────────────────────────────────────────────────────────────────
# Lifecycle & persistence
# ─────────────────────────────────────────────────────────────────────────────

def test_state_survives_restart():
    store = MemoryKeyValueStore()
    context = make_context(store=store)
    context.add_zone_from_drag("Galley", (0.1, 0.1), (0.4, 0.4))
    context.start_timer()
    context.capture("42", "engineer", "walking", False, 0.2, 0.2)

    restored = make_context(store=store)
    restored.init()

    assert restored.records() == context.records()
    assert [z.name for z in restored.zone_list()] == ["Galley"]


def test_corrupt_persisted_state_yields_defaults():
    valid = ObservationRecord(
        id="ok", created_at=1, interval_index=0, interval_label="—",
        observer_name="Observer 1", building_site="Habitat A", badge_number="1",
        role=Role.PILOT, activity=Activity.WALKING, is_group=False,
        x=0.5, y=0.5, zone="Unassigned", cloud_status=CloudStatus.OK,
    ).to_dict()
    legacy = dict(valid, id="legacy")
    del legacy["source"]
    ancient = dict(valid, id="ancient", created_at=-62_135_596_800_001)

    store = MemoryKeyValueStore({
        ZONES_KEY: b'{"not": "an array"}',
        RECORDS_KEY: json.dumps([valid, {"bogus": True}, "text", legacy, ancient]).encode(),
    })
    context = make_context(store=store)
    context.init()

    assert context.zone_list() == []
    assert [r.id for r in context.records()] == ["ok", "legacy"]
    assert context.records()[1].source == RecordSource.LIVE

    broken = make_context(store=MemoryKeyValueStore({RECORDS_KEY: b"{{{"}))
    broken.init()
    assert broken.records() == []


def test_file_store_roundtrip(tmp_path):
    store = FileKeyValueStore(tmp_path / "session")
    assert store.get(RECORDS_KEY) is None

    context = make_context(store=store)
    context.start_timer()
    context.capture("42", "engineer", "walking", False, 0.5, 0.5)

    assert (tmp_path / "session" / f"{RECORDS_KEY}.json").exists()

    restored = make_context(store=FileKeyValueStore(tmp_path / "session"))
    restored.init()
    assert len(restored.records()) == 1

    with pytest.raises(ValueError):
        store.get("../escape")


def test_reset_clears_records_but_keeps_zones():
    context = make_context()
    context.add_zone_from_drag("Galley", (0.1, 0.1), (0.4, 0.4))
    context.start_timer()
    context.capture("42", "engineer", "walking", False, 0.2, 0.2)
    context.set_playback_enabled(True)

    result = context.reset()

    assert result.message == "Reset"
    assert context.records() == []
    assert len(context.zone_list()) == 1
    assert context.timer.is_running is False
    assert context.playback.enabled is False
    assert context.last_recorded == ""


# ─────────────────────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────────────────────

def test_config_validation():
    with pytest.raises(ValueError):
        SessionConfig(observer_name="Nobody")
    with pytest.raises(ValueError):
        SessionConfig(building_site="Mars")
    with pytest.raises(ValueError):
        SessionConfig(interval_minutes=0)
    with pytest.raises(ValueError):
        SessionConfig(playback_speed=3)
    with pytest.raises(ValueError):
        SessionConfig(import_mode="merge")
    with pytest.raises(ValueError):
        HeatmapConfig(grid=300)
    with pytest.raises(ValueError):
        HeatmapConfig(strength=0.0)
    with pytest.raises(ValueError):
        MQTTConfig(port=0)
    with pytest.raises(ValueError):
        MQTTConfig(reconnect_min_delay=10, reconnect_max_delay=5)


def test_config_from_yaml(tmp_path):
    path = tmp_path / "observer.yaml"
    path.write_text(
        "session_id: habitat_b\n"
        "observer_name: Observer 2\n"
        "building_site: Habitat B\n"
        "interval_minutes: 10\n"
        "import_mode: append\n"
        "auto_send: false\n"
        "heatmap:\n"
        "  grid: 30\n"
        "mqtt_config:\n"
        "  broker: broker.local\n"
        f"storage_dir: {tmp_path / 'data'}\n"
    )

    config = SessionConfig.from_yaml(path)

    assert config.session_id == "habitat_b"
    assert config.interval_minutes == 10
    assert config.import_mode == ImportMode.APPEND
    assert config.auto_send is False
    assert config.heatmap.grid == 30
    assert config.heatmap.strength == 0.55
    assert config.mqtt_config.broker == "broker.local"
    assert config.observation_topic == "habitat/observations/habitat_b"
    assert config.storage_dir == tmp_path / "data"


# ─────────────────────────────────────────────────────────────────────────────
# Structured events
# ─────────────────────────────────────────────────────────────────────────────

class RecordingLogger(StructuredLogger):
    def __init__(self):
        super().__init__(component="session_test")
        self.entries = []

    def _log(self, level, event, message, metadata=None, exc_info=None):
        self.entries.append((level, event, metadata))


def test_session_emits_structured_events():
    events = RecordingLogger()
    context = SessionContext(SessionConfig(), clock=FakeClock(), events=events)

    context.capture("42", "pilot", "walking", False, 0.5, 0.5)
    context.start_timer()
    context.capture("42", "pilot", "walking", False, 0.5, 0.5)
    zone = context.add_zone_from_drag("Galley", (0.1, 0.1), (0.4, 0.4)).zone
    context.recompute_zones()
    context.delete_zone(zone.id)
    context.import_csv("")

    emitted = [event for _, event, _ in events.entries]
    assert emitted == [
        LogEvent.RECORD_REJECTED,
        LogEvent.RECORD_CAPTURED,
        LogEvent.ZONE_ADDED,
        LogEvent.ZONES_RECOMPUTED,
        LogEvent.ZONE_REMOVED,
        LogEvent.IMPORT_REJECTED,
    ]
    assert set(emitted) <= RECORD_EVENTS | ZONE_EVENTS
    assert events.entries[1][2]['cloud_status'] == "pending"
