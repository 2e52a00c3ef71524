"""
Review pipeline tests: timeline, filters, playback and heatmap.
"""

import math

import pytest

from habitat_zone.analytics import (
    HeatCell,
    PlaybackController,
    PlaybackWindow,
    RecordFilter,
    apply_filters,
    build_heatmap_grid,
    build_review_view,
    clamp_grid,
    count_by,
    playback_window,
    sort_timeline,
)
from habitat_session.catalog import Activity, Role
from habitat_session.records import ObservationRecord


def _record(record_id, created_at, **overrides):
    fields = dict(
        id=record_id,
        created_at=created_at,
        interval_index=0,
        interval_label="—",
        observer_name="Observer 1",
        building_site="Habitat A",
        badge_number="100",
        role=Role.ENGINEER,
        activity=Activity.WALKING,
        is_group=False,
        x=0.5,
        y=0.5,
        zone="Unassigned",
    )
    fields.update(overrides)
    return ObservationRecord(**fields)


# ─────────────────────────────────────────────────────────────────────────────
# Timeline & filters
# ─────────────────────────────────────────────────────────────────────────────

def test_timeline_is_stable_sort():
    records = [_record("c", 3000), _record("a1", 1000), _record("b", 2000), _record("a2", 1000)]

    assert [r.id for r in sort_timeline(records)] == ["a1", "a2", "b", "c"]


def test_filters_combine_with_and():
    records = [
        _record("1", 1, role=Role.PILOT, activity=Activity.MEAL, is_group=True, badge_number="AB-12"),
        _record("2", 2, role=Role.PILOT, activity=Activity.MEAL, is_group=False, badge_number="ab-99"),
        _record("3", 3, role=Role.MEDIC, activity=Activity.MEAL, is_group=True, badge_number="AB-13"),
        _record("4", 4, role=Role.PILOT, activity=Activity.READING, is_group=True, badge_number="AB-14"),
    ]

    assert [r.id for r in apply_filters(records, RecordFilter())] == ["1", "2", "3", "4"]
    assert [r.id for r in apply_filters(records, RecordFilter(role=Role.PILOT))] == ["1", "2", "4"]
    assert [r.id for r in apply_filters(records, RecordFilter(badge_query=" ab-9 "))] == ["2"]

    combined = RecordFilter(role=Role.PILOT, activity=Activity.MEAL, group_only=True, badge_query="ab")
    assert combined.is_active
    assert [r.id for r in apply_filters(records, combined)] == ["1"]


# ─────────────────────────────────────────────────────────────────────────────
# Playback
# ─────────────────────────────────────────────────────────────────────────────

def test_playback_window_cutoff():
    window = PlaybackWindow(min_t=1000, max_t=5000)

    assert window.cutoff(0) == 1000
    assert window.cutoff(500) == 3000
    assert window.cutoff(1000) == 5000


def test_playback_cutoff_filters_view():
    records = [_record("t0", 1000), _record("t1", 2999), _record("t2", 3001), _record("t3", 5000)]
    playback = PlaybackController()
    playback.set_enabled(True)
    playback.seek(500)

    view = build_review_view(records, RecordFilter(), playback)

    assert [r.id for r in view] == ["t0", "t1"]


def test_playback_window_ignores_filters():
    records = [
        _record("a", 1000, role=Role.MEDIC),
        _record("b", 3000, role=Role.PILOT),
        _record("c", 5000, role=Role.PILOT),
    ]
    playback = PlaybackController()
    playback.set_enabled(True)
    playback.seek(500)

    view = build_review_view(records, RecordFilter(role=Role.PILOT), playback)

    assert [r.id for r in view] == ["b"]


def test_playback_disabled_or_empty_has_no_effect():
    records = [_record("a", 1000), _record("b", 5000)]
    playback = PlaybackController()
    playback.seek(0)

    assert len(build_review_view(records, RecordFilter(), playback)) == 2
    assert playback.cutoff(playback_window(sort_timeline(records))) is None

    playback.set_enabled(True)
    assert playback_window([]) is None
    assert playback.cutoff(None) is None
    assert build_review_view([], RecordFilter(), playback) == []


def test_set_enabled_resets_position():
    playback = PlaybackController()
    playback.set_enabled(True)
    playback.seek(200)
    playback.play()

    playback.set_enabled(False)

    assert playback.position == 1000
    assert playback.playing is False


def test_seek_clamps_and_play_requires_enabled():
    playback = PlaybackController()
    playback.seek(-5)
    assert playback.position == 0
    playback.seek(5000)
    assert playback.position == 1000

    playback.play()
    assert playback.playing is False


def test_playback_advance_steps_by_speed():
    window = PlaybackWindow(min_t=0, max_t=10_000)
    playback = PlaybackController(speed=2)
    playback.set_enabled(True)
    playback.seek(0)
    playback.play()

    # 120 ms * 2 over a 10 s window = 24 positions
    assert playback.advance(window) == 24
    assert playback.playing is True

    playback.set_speed(8)
    assert playback.advance(window) == 24 + 96


def test_playback_advance_clamps_and_stops_at_end():
    window = PlaybackWindow(min_t=0, max_t=10_000)
    playback = PlaybackController(speed=2)
    playback.set_enabled(True)
    playback.seek(990)
    playback.play()

    assert playback.advance(window) == 1000
    assert playback.playing is False

    # Not playing: no movement
    playback.seek(10)
    assert playback.advance(window) == 10


def test_playback_advance_single_instant_timeline():
    window = PlaybackWindow(min_t=5000, max_t=5000)
    playback = PlaybackController(speed=1)
    playback.set_enabled(True)
    playback.seek(0)
    playback.play()

    assert playback.advance(window) == 1000
    assert playback.playing is False


def test_playback_rejects_unknown_speed():
    with pytest.raises(ValueError):
        PlaybackController(speed=3)


# ─────────────────────────────────────────────────────────────────────────────
# Heatmap
# ─────────────────────────────────────────────────────────────────────────────

def test_heatmap_single_cell():
    cells = build_heatmap_grid([(0.51, 0.51)] * 10, grid=20)

    assert cells == [HeatCell(gx=10, gy=10, count=10, norm=1.0)]


def test_heatmap_normalizes_by_max():
    points = [(0.05, 0.05), (0.05, 0.05), (0.95, 0.05)]
    cells = {(c.gx, c.gy): c for c in build_heatmap_grid(points, grid=10)}

    assert cells[(0, 0)].count == 2
    assert cells[(0, 0)].norm == 1.0
    assert cells[(9, 0)].norm == 0.5
    assert cells[(9, 0)].alpha(0.55) == pytest.approx(0.275)


def test_heatmap_edges_and_invalid_points():
    cells = build_heatmap_grid([(1.0, 1.0), (math.nan, 0.2), (0.0, math.inf)], grid=5)

    assert cells == [HeatCell(gx=4, gy=4, count=1, norm=1.0)]
    assert build_heatmap_grid([], grid=60) == []


def test_clamp_grid():
    assert clamp_grid(3) == 5
    assert clamp_grid(500) == 200
    assert clamp_grid(20.9) == 20
    assert clamp_grid(float("nan")) == 60
    assert clamp_grid(float("-inf")) == 60


def test_count_by_seeds_every_key():
    records = [_record("a", 1, activity=Activity.MEAL), _record("b", 2, activity=Activity.MEAL)]
    counts = count_by(records, "activity", Activity)

    assert list(counts.keys()) == list(Activity)
    assert counts[Activity.MEAL] == 2
    assert counts[Activity.WALKING] == 0
