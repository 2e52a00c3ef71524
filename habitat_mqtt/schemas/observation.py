"""
Observation Payload Schema
==========================

Bounded Context: Sink Document

The flat document delivered to the remote log for one live record. It
carries the same semantic fields as a CSV export row, with a
human-readable timestamp and no internal identifiers.

Message Flow:
    SyncQueue → ObservationPayload → ObservationPublisher → MQTT Broker
"""

from dataclasses import dataclass
from typing import Any, Dict

from .common import Timestamp

PAYLOAD_KEYS = (
    'created_at_iso',
    'observer',
    'site',
    'interval_minutes',
    'interval_index',
    'interval_label',
    'badge',
    'role',
    'activity',
    'group',
    'x_norm',
    'y_norm',
    'zone',
    'note',
)


@dataclass(frozen=True)
class ObservationPayload:
    """
    Immutable sink document for one observation.

    Attributes:
        created_at: Capture time (ISO 8601 UTC)
        observer: Observer name
        site: Building site
        interval_minutes: Recording interval length at send time
        interval_index: Recording window index
        interval_label: Recording window label
        badge: Subject badge number
        role: Role key
        activity: Activity key
        group: Group observation flag
        x_norm, y_norm: Normalized coordinates
        zone: Zone name
        note: Free-form note

    Invariants:
        - 0 <= x_norm, y_norm <= 1
        - interval_minutes >= 1
    """
    created_at: Timestamp
    observer: str
    site: str
    interval_minutes: int
    interval_index: int
    interval_label: str
    badge: str
    role: str
    activity: str
    group: bool
    x_norm: float
    y_norm: float
    zone: str
    note: str = ""

    def __post_init__(self):
        """Validate invariants."""
        if not 0.0 <= self.x_norm <= 1.0:
            raise ValueError(f"x_norm must be in [0, 1], got {self.x_norm}")
        if not 0.0 <= self.y_norm <= 1.0:
            raise ValueError(f"y_norm must be in [0, 1], got {self.y_norm}")
        if self.interval_minutes < 1:
            raise ValueError(f"interval_minutes must be >= 1, got {self.interval_minutes}")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict (sink key names)."""
        return {
            'created_at_iso': self.created_at.to_dict(),
            'observer': self.observer,
            'site': self.site,
            'interval_minutes': self.interval_minutes,
            'interval_index': self.interval_index,
            'interval_label': self.interval_label,
            'badge': self.badge,
            'role': self.role,
            'activity': self.activity,
            'group': self.group,
            'x_norm': self.x_norm,
            'y_norm': self.y_norm,
            'zone': self.zone,
            'note': self.note,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ObservationPayload':
        """Deserialize from dict.

        Raises:
            ValueError: If required keys missing or invalid values
        """
        try:
            return cls(
                created_at=Timestamp(value=data['created_at_iso']),
                observer=str(data['observer']),
                site=str(data['site']),
                interval_minutes=int(data['interval_minutes']),
                interval_index=int(data['interval_index']),
                interval_label=str(data['interval_label']),
                badge=str(data['badge']),
                role=str(data['role']),
                activity=str(data['activity']),
                group=bool(data['group']),
                x_norm=float(data['x_norm']),
                y_norm=float(data['y_norm']),
                zone=str(data['zone']),
                note=str(data.get('note') or ''),
            )
        except KeyError as e:
            raise ValueError(f"Missing required payload field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid payload data: {e}")
