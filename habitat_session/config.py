"""
Configuration schema for the observation session.

This module defines the configuration structure for a recording session:
observer and site selection, interval length, review defaults (heatmap,
playback), auto-send and MQTT sink settings, and the storage directory.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import yaml

from habitat_session.catalog import DEFAULT_OBSERVER, DEFAULT_SITE, OBSERVER_OPTIONS, SITE_OPTIONS
from habitat_session.csv_codec import ImportMode
from habitat_zone.analytics import DEFAULT_GRID, MAX_GRID, MIN_GRID, PLAYBACK_SPEEDS


@dataclass(frozen=True)
class HeatmapConfig:
    """Heatmap overlay defaults."""

    enabled: bool = False
    grid: int = DEFAULT_GRID
    strength: float = 0.55

    def __post_init__(self):
        """Validate heatmap configuration."""
        if not MIN_GRID <= self.grid <= MAX_GRID:
            raise ValueError(
                f"heatmap grid must be in [{MIN_GRID}, {MAX_GRID}], got {self.grid}"
            )

        if not 0.1 <= self.strength <= 1.0:
            raise ValueError(
                f"heatmap strength must be in [0.1, 1.0], got {self.strength}"
            )


@dataclass(frozen=True)
class MQTTConfig:
    """MQTT broker configuration for the observation sink."""

    broker: str = "localhost"
    port: int = 1883
    username: Optional[str] = None
    password: Optional[str] = None
    qos: int = 0  # Fire-and-forget
    reconnect_min_delay: int = 1  # Seconds, doubled up to the max
    reconnect_max_delay: int = 30

    observation_topic: str = "habitat/observations/{session_id}"

    def __post_init__(self):
        """Validate MQTT configuration."""
        if not 1 <= self.port <= 65535:
            raise ValueError(
                f"MQTT port must be in [1, 65535], got {self.port}"
            )

        if self.qos not in {0, 1, 2}:
            raise ValueError(
                f"MQTT QoS must be 0, 1, or 2, got {self.qos}"
            )

        if self.reconnect_min_delay <= 0 or self.reconnect_max_delay < self.reconnect_min_delay:
            raise ValueError(
                f"MQTT reconnect delays must satisfy 0 < min <= max, "
                f"got {self.reconnect_min_delay}..{self.reconnect_max_delay}"
            )

    def topic_for(self, session_id: str) -> str:
        return self.observation_topic.format(session_id=session_id)


@dataclass(frozen=True)
class SessionConfig:
    """
    Main configuration for an observation session.

    Loaded from YAML and validated at startup. Immutable after
    construction; runtime changes go through SessionContext.
    """

    # Session identification
    session_id: str = "habitat_a"

    # Recording settings
    observer_name: str = DEFAULT_OBSERVER
    building_site: str = DEFAULT_SITE
    interval_minutes: int = 5

    # Import/review defaults
    import_mode: ImportMode = ImportMode.REPLACE
    playback_speed: int = 2
    heatmap: HeatmapConfig = field(default_factory=HeatmapConfig)

    # Synchronization
    auto_send: bool = True
    mqtt_config: MQTTConfig = field(default_factory=MQTTConfig)

    # Persisted state
    storage_dir: Path = Path("./session_data")

    def __post_init__(self):
        """Validate session configuration."""
        if not self.session_id:
            raise ValueError("session_id cannot be empty")

        if self.interval_minutes < 1:
            raise ValueError(
                f"interval_minutes must be >= 1, got {self.interval_minutes}"
            )

        if self.observer_name not in OBSERVER_OPTIONS:
            raise ValueError(
                f"Invalid observer_name: {self.observer_name}. "
                f"Must be one of {OBSERVER_OPTIONS}"
            )

        if self.building_site not in SITE_OPTIONS:
            raise ValueError(
                f"Invalid building_site: {self.building_site}. "
                f"Must be one of {SITE_OPTIONS}"
            )

        # Accept plain strings from YAML
        object.__setattr__(self, "import_mode", ImportMode(self.import_mode))

        if self.playback_speed not in PLAYBACK_SPEEDS:
            raise ValueError(
                f"playback_speed must be one of {PLAYBACK_SPEEDS}, got {self.playback_speed}"
            )

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "SessionConfig":
        """
        Load configuration from YAML file.

        Example YAML:
            session_id: "habitat_a"
            observer_name: "Observer 1"
            building_site: "Habitat A"
            interval_minutes: 5

            import_mode: "replace"
            playback_speed: 2
            heatmap:
              enabled: false
              grid: 60
              strength: 0.55

            auto_send: true
            mqtt_config:
              broker: "localhost"
              port: 1883
              observation_topic: "habitat/observations/{session_id}"

            storage_dir: "./session_data"
        """
        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        heatmap = HeatmapConfig(**data.get("heatmap", {}))
        mqtt_config = MQTTConfig(**data.get("mqtt_config", {}))

        return cls(
            session_id=data.get("session_id", "habitat_a"),
            observer_name=data.get("observer_name", DEFAULT_OBSERVER),
            building_site=data.get("building_site", DEFAULT_SITE),
            interval_minutes=data.get("interval_minutes", 5),
            import_mode=data.get("import_mode", ImportMode.REPLACE.value),
            playback_speed=data.get("playback_speed", 2),
            heatmap=heatmap,
            auto_send=data.get("auto_send", True),
            mqtt_config=mqtt_config,
            storage_dir=Path(data.get("storage_dir", "./session_data")),
        )

    @property
    def observation_topic(self) -> str:
        return self.mqtt_config.topic_for(self.session_id)
