"""
CSV Codec
=========

Bounded Context: Record export and (untrusted) record import.

Export writes the fixed 16-column schema. Import runs a character
scanner over the text, validates the header, then coerces every row into
a record with safe fallbacks: one bad cell never blocks the rest of the
file, but a missing required column rejects the whole import.

Design:
- Pure functions (no store access); the session applies the merge policy
- Imported records are settled history: cloud_status=ok, source=import
- Fresh ids for every imported row
"""

import math
import re
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from habitat_mqtt.schemas.common import Timestamp, epoch_ms_in_range
from habitat_zone.geometry.resolver import ZoneResolver
from habitat_zone.geometry.shapes import ZoneRect, clamp01
from habitat_session.catalog import (
    DEFAULT_OBSERVER,
    DEFAULT_SITE,
    parse_activity_or_default,
    parse_role_or_default,
)
from habitat_session.interval_timer import NO_INTERVAL_LABEL
from habitat_session.records import (
    CloudStatus,
    ObservationRecord,
    RecordSource,
    new_record_id,
)

EXPORT_COLUMNS = (
    "created_at_iso",
    "observer",
    "site",
    "interval_minutes",
    "interval_index",
    "interval_label",
    "badge",
    "role",
    "activity",
    "group",
    "x_norm",
    "y_norm",
    "zone",
    "note",
    "cloud_status",
    "source",
)

OPTIONAL_COLUMNS = ("cloud_status", "source")
REQUIRED_COLUMNS = tuple(c for c in EXPORT_COLUMNS if c not in OPTIONAL_COLUMNS)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_NEEDS_QUOTING = re.compile(r'[",\n]')


class ImportMode(str, Enum):
    """Merge policy for imported records."""
    REPLACE = "replace"
    APPEND = "append"


class CsvImportError(ValueError):
    """Raised when a CSV cannot be imported at all."""

    def __init__(self, message: str, missing_columns: Sequence[str] = ()):
        super().__init__(message)
        self.missing_columns = list(missing_columns)


# ─────────────────────────────────────────────────────────────────────────────
# Timestamps
# ─────────────────────────────────────────────────────────────────────────────

def parse_iso_ms(value: str) -> Optional[int]:
    """
    Parse an ISO-8601 timestamp to epoch milliseconds.

    Naive timestamps are read as UTC. Instants whose UTC value datetime
    cannot represent (e.g. "0001-01-01T00:00:00+01:00") count as
    unparseable, so they never reach the store.

    Returns:
        Epoch ms, or None if unparseable or out of range
    """
    value = (value or "").strip()
    if not value:
        return None
    if value[-1] in "zZ":
        value = value[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    try:
        ms = (dt - _EPOCH) // timedelta(milliseconds=1)
    except OverflowError:
        return None
    return ms if epoch_ms_in_range(ms) else None


def export_filename(now_ms: int) -> str:
    return f"mission_observations_{Timestamp.from_epoch_ms(now_ms).value[:10]}.csv"


# ─────────────────────────────────────────────────────────────────────────────
# Export
# ─────────────────────────────────────────────────────────────────────────────

def csv_escape(value: Optional[str]) -> str:
    """Quote a field containing a comma, quote or newline; double inner quotes."""
    v = "" if value is None else str(value)
    if _NEEDS_QUOTING.search(v):
        return '"' + v.replace('"', '""') + '"'
    return v


def record_to_row(record: ObservationRecord, interval_minutes: int) -> List[str]:
    """One export row, fields in EXPORT_COLUMNS order (unescaped)."""
    return [
        Timestamp.from_epoch_ms(record.created_at).value,
        record.observer_name,
        record.building_site,
        str(interval_minutes),
        str(record.interval_index),
        record.interval_label,
        record.badge_number,
        record.role.value,
        record.activity.value,
        "1" if record.is_group else "0",
        f"{record.x:.6f}",
        f"{record.y:.6f}",
        record.zone,
        record.note or "",
        record.cloud_status.value if record.cloud_status else "",
        (record.source or RecordSource.LIVE).value,
    ]


def export_csv(records: Iterable[ObservationRecord], interval_minutes: int) -> str:
    """
    Serialize records to CSV text.

    Args:
        records: Records in the desired row order
        interval_minutes: Current recording interval length

    Returns:
        CSV text, header first, rows joined by "\\n"
    """
    lines = [",".join(EXPORT_COLUMNS)]
    for record in records:
        lines.append(",".join(csv_escape(v) for v in record_to_row(record, interval_minutes)))
    return "\n".join(lines)


# ─────────────────────────────────────────────────────────────────────────────
# Parse
# ─────────────────────────────────────────────────────────────────────────────

def parse_csv(text: str) -> List[List[str]]:
    """
    Scan CSV text into rows of cells.

    Supports quoted fields with embedded commas and newlines and "" as an
    escaped quote. Bare carriage returns outside quotes are dropped. Rows
    made only of empty/whitespace cells are discarded.
    """
    rows: List[List[str]] = []
    row: List[str] = []
    cell: List[str] = []
    in_quotes = False

    i = 0
    n = len(text)
    while i < n:
        c = text[i]
        if in_quotes:
            if c == '"':
                if i + 1 < n and text[i + 1] == '"':
                    cell.append('"')
                    i += 1
                else:
                    in_quotes = False
            else:
                cell.append(c)
        elif c == '"':
            in_quotes = True
        elif c == ",":
            row.append("".join(cell))
            cell = []
        elif c == "\n":
            row.append("".join(cell))
            rows.append(row)
            row = []
            cell = []
        elif c != "\r":
            cell.append(c)
        i += 1

    row.append("".join(cell))
    rows.append(row)

    return [r for r in rows if any(x.strip() for x in r)]


# ─────────────────────────────────────────────────────────────────────────────
# Import
# ─────────────────────────────────────────────────────────────────────────────

def _parse_float(raw: str) -> float:
    try:
        value = float(raw) if raw.strip() else 0.0
    except ValueError:
        return 0.0
    return value if math.isfinite(value) else 0.0


def _parse_int(raw: str) -> int:
    try:
        value = float(raw) if raw.strip() else 0.0
    except ValueError:
        return 0
    return int(value) if math.isfinite(value) else 0


def build_header_index(header: Sequence[str]) -> Dict[str, int]:
    """Column name → first index, header cells trimmed."""
    index: Dict[str, int] = {}
    for i, name in enumerate(header):
        index.setdefault(name.strip(), i)
    return index


def missing_columns(header_index: Dict[str, int]) -> List[str]:
    return [name for name in REQUIRED_COLUMNS if name not in header_index]


def row_to_record(
    row: Sequence[str],
    header_index: Dict[str, int],
    zones: Sequence[ZoneRect],
    now_ms: int,
) -> ObservationRecord:
    """
    Coerce one data row into an imported record.

    Never raises for bad cell content: timestamps fall back to now,
    numbers to 0, enums to their defaults.
    """

    def cell(name: str) -> str:
        i = header_index.get(name)
        if i is None or i >= len(row):
            return ""
        return row[i]

    created_at = parse_iso_ms(cell("created_at_iso"))
    x = clamp01(_parse_float(cell("x_norm")))
    y = clamp01(_parse_float(cell("y_norm")))
    group_raw = cell("group").strip().lower()

    return ObservationRecord(
        id=new_record_id(),
        created_at=created_at if created_at is not None else now_ms,
        interval_index=_parse_int(cell("interval_index")),
        interval_label=cell("interval_label") or NO_INTERVAL_LABEL,
        observer_name=cell("observer") or DEFAULT_OBSERVER,
        building_site=cell("site") or DEFAULT_SITE,
        badge_number=cell("badge"),
        role=parse_role_or_default(cell("role")),
        activity=parse_activity_or_default(cell("activity")),
        is_group=group_raw in ("1", "true"),
        x=x,
        y=y,
        zone=cell("zone") or ZoneResolver.resolve(x, y, zones),
        note=cell("note"),
        cloud_status=CloudStatus.OK,
        source=RecordSource.IMPORT,
    )


def import_csv(
    text: str,
    zones: Sequence[ZoneRect],
    clock: Callable[[], int],
) -> List[ObservationRecord]:
    """
    Parse and validate CSV text into imported records.

    Args:
        text: Untrusted CSV text
        zones: Ordered zones used when a row has no zone
        clock: Epoch-ms clock for timestamp fallback

    Returns:
        Imported records, file order

    Raises:
        CsvImportError: If the file is empty or required columns are missing
    """
    rows = parse_csv(text)
    if len(rows) < 2:
        raise CsvImportError("CSV looks empty.")

    header_index = build_header_index(rows[0])
    missing = missing_columns(header_index)
    if missing:
        raise CsvImportError(f"CSV missing columns: {', '.join(missing)}", missing)

    now_ms = clock()
    return [row_to_record(row, header_index, zones, now_ms) for row in rows[1:]]
