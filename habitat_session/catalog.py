"""
Classification catalog: roles, activities and session option lists.

Enum coercion is total: parse_role_or_default / parse_activity_or_default
never raise, they fall back to a fixed default for unknown input.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

import supervision as sv


class Role(str, Enum):
    """Observed subject role."""
    COMMANDER = "commander"
    PILOT = "pilot"
    ENGINEER = "engineer"
    SCIENTIST = "scientist"
    MEDIC = "medic"
    MISSION_CONTROL = "mission_control"
    VISITOR_OTHER = "visitor_other"

    @property
    def label(self) -> str:
        return ROLE_LABELS[self]


ROLE_LABELS: Dict[Role, str] = {
    Role.COMMANDER: "Commander",
    Role.PILOT: "Pilot",
    Role.ENGINEER: "Engineer",
    Role.SCIENTIST: "Scientist",
    Role.MEDIC: "Medic",
    Role.MISSION_CONTROL: "Mission control",
    Role.VISITOR_OTHER: "Visitor / other",
}


@dataclass(frozen=True)
class ActivityInfo:
    """Display metadata for an activity (label and marker color)."""

    label: str
    hex_color: str

    @property
    def color(self) -> sv.Color:
        return sv.Color.from_hex(self.hex_color)


class Activity(str, Enum):
    """Observed activity kind."""
    WALKING = "walking"
    SITTING = "sitting"
    STANDING = "standing"
    SOCIALIZING = "socializing"
    READING = "reading"
    COMPUTER_WORK = "computer_work"
    EQUIPMENT_TASK = "equipment_task"
    MEAL = "meal"
    SLEEP_REST = "sleep_rest"

    @property
    def label(self) -> str:
        return ACTIVITY_INFO[self].label

    @property
    def color(self) -> sv.Color:
        return ACTIVITY_INFO[self].color


ACTIVITY_INFO: Dict[Activity, ActivityInfo] = {
    Activity.WALKING: ActivityInfo("Walking", "#1f77b4"),
    Activity.SITTING: ActivityInfo("Sitting", "#9467bd"),
    Activity.STANDING: ActivityInfo("Standing", "#ff7f0e"),
    Activity.SOCIALIZING: ActivityInfo("Socializing", "#e377c2"),
    Activity.READING: ActivityInfo("Reading", "#2ca02c"),
    Activity.COMPUTER_WORK: ActivityInfo("Computer work", "#17becf"),
    Activity.EQUIPMENT_TASK: ActivityInfo("Equipment / procedure", "#8c564b"),
    Activity.MEAL: ActivityInfo("Meal / hydration", "#bcbd22"),
    Activity.SLEEP_REST: ActivityInfo("Rest / sleep", "#7f7f7f"),
}

DEFAULT_ROLE = Role.VISITOR_OTHER
DEFAULT_ACTIVITY = Activity.WALKING

_ROLE_KEYS = {role.value: role for role in Role}
_ACTIVITY_KEYS = {activity.value: activity for activity in Activity}


def parse_role_or_default(raw: Optional[str], default: Role = DEFAULT_ROLE) -> Role:
    """Map a raw key to a Role, falling back to default for unknown keys."""
    if isinstance(raw, Role):
        return raw
    return _ROLE_KEYS.get(str(raw or "").strip(), default)


def parse_activity_or_default(
    raw: Optional[str],
    default: Activity = DEFAULT_ACTIVITY,
) -> Activity:
    """Map a raw key to an Activity, falling back to default for unknown keys."""
    if isinstance(raw, Activity):
        return raw
    return _ACTIVITY_KEYS.get(str(raw or "").strip(), default)


# Session option lists
OBSERVER_OPTIONS: Tuple[str, ...] = ("Observer 1", "Observer 2", "Observer 3")
SITE_OPTIONS: Tuple[str, ...] = (
    "Habitat A",
    "Habitat B",
    "Control Room",
    "Lab Module",
    "Airlock / EVA Prep",
)

DEFAULT_OBSERVER = OBSERVER_OPTIONS[0]
DEFAULT_SITE = SITE_OPTIONS[0]
