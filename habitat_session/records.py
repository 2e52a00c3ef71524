"""
Observation Record Model
========================

Bounded Context: The captured/imported data point.

Design:
- Frozen dataclass: a record is never partially constructed or mutated
  in place; status and zone changes produce a new instance
- Coordinates are clamped into [0, 1] on construction
- to_dict()/from_dict() for the persisted JSON array
"""

import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional

from habitat_mqtt.schemas.common import epoch_ms_in_range
from habitat_zone.geometry.shapes import clamp01
from habitat_session.catalog import (
    Activity,
    Role,
    parse_activity_or_default,
    parse_role_or_default,
)


class CloudStatus(str, Enum):
    """Per-record delivery status."""
    PENDING = "pending"
    OK = "ok"
    FAIL = "fail"

    @property
    def retry_eligible(self) -> bool:
        return self in (CloudStatus.PENDING, CloudStatus.FAIL)


class RecordSource(str, Enum):
    """Where a record came from."""
    LIVE = "live"
    IMPORT = "import"


def new_record_id() -> str:
    """Process-unique opaque identifier."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class ObservationRecord:
    """
    One observation tying a subject, time, location and classification.

    Attributes:
        id: Opaque identifier, never reused
        created_at: Epoch milliseconds (total order of records)
        interval_index: Index of the recording window at capture
        interval_label: Display label of that window ("HH:MM–HH:MM")
        observer_name: Session observer
        building_site: Session site
        badge_number: Observed subject
        role: Subject role
        activity: Observed activity
        is_group: Group observation flag
        x, y: Normalized plan coordinates, clamped into [0, 1]
        zone: Zone name at creation/recomputation time
        note: Free-form note
        cloud_status: Delivery status (None = never synchronized)
        source: LIVE or IMPORT
    """

    id: str
    created_at: int
    interval_index: int
    interval_label: str
    observer_name: str
    building_site: str
    badge_number: str
    role: Role
    activity: Activity
    is_group: bool
    x: float
    y: float
    zone: str
    note: str = ""
    cloud_status: Optional[CloudStatus] = None
    source: RecordSource = RecordSource.LIVE

    def __post_init__(self):
        """Enforce a renderable timestamp, coordinate clamping and enum types."""
        if not epoch_ms_in_range(self.created_at):
            raise ValueError(f"created_at out of range: {self.created_at}")
        object.__setattr__(self, "x", clamp01(self.x))
        object.__setattr__(self, "y", clamp01(self.y))
        object.__setattr__(self, "role", parse_role_or_default(self.role))
        object.__setattr__(self, "activity", parse_activity_or_default(self.activity))
        if self.cloud_status is not None:
            object.__setattr__(self, "cloud_status", CloudStatus(self.cloud_status))
        object.__setattr__(self, "source", RecordSource(self.source))

    @property
    def is_live(self) -> bool:
        return self.source == RecordSource.LIVE

    @property
    def sync_eligible(self) -> bool:
        """Live records still waiting for (re)delivery."""
        return (
            self.is_live
            and self.cloud_status is not None
            and self.cloud_status.retry_eligible
        )

    def with_cloud_status(self, status: CloudStatus) -> "ObservationRecord":
        return replace(self, cloud_status=status)

    def with_zone(self, zone: str) -> "ObservationRecord":
        return replace(self, zone=zone)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict (persisted state)."""
        return {
            "id": self.id,
            "created_at": self.created_at,
            "interval_index": self.interval_index,
            "interval_label": self.interval_label,
            "observer_name": self.observer_name,
            "building_site": self.building_site,
            "badge_number": self.badge_number,
            "role": self.role.value,
            "activity": self.activity.value,
            "is_group": self.is_group,
            "x": self.x,
            "y": self.y,
            "zone": self.zone,
            "note": self.note,
            "cloud_status": self.cloud_status.value if self.cloud_status else None,
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ObservationRecord":
        """
        Deserialize from dict.

        Records persisted without a source are treated as live.

        Raises:
            ValueError: If required keys missing or invalid values
        """
        try:
            status = data.get("cloud_status")
            return cls(
                id=str(data["id"]),
                created_at=int(data["created_at"]),
                interval_index=int(data.get("interval_index", 0)),
                interval_label=str(data.get("interval_label", "—")),
                observer_name=str(data.get("observer_name", "")),
                building_site=str(data.get("building_site", "")),
                badge_number=str(data.get("badge_number", "")),
                role=parse_role_or_default(data.get("role")),
                activity=parse_activity_or_default(data.get("activity")),
                is_group=bool(data.get("is_group", False)),
                x=data.get("x", 0.0),
                y=data.get("y", 0.0),
                zone=str(data.get("zone", "")),
                note=str(data.get("note") or ""),
                cloud_status=CloudStatus(status) if status else None,
                source=RecordSource(data.get("source") or RecordSource.LIVE.value),
            )
        except KeyError as e:
            raise ValueError(f"Missing required ObservationRecord field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid ObservationRecord data: {e}")
