#!/usr/bin/env python3
"""
Observer Service - Entry Point
==============================

This script starts the Habitat observation service, which:
- Loads the persisted session (zones, markers) from the storage directory
- Runs the recording interval timer
- Delivers live markers to the remote log over MQTT (auto-send)
- Advances review playback when playing

Usage:
    uv run python run_observer_service.py --config config/observer_config.yaml

Architecture:
    - SessionContext: Session state owner (habitat_session)
    - SyncQueue: One-record-per-tick delivery (habitat_session)
    - ObservationPublisher: MQTT sink (habitat_mqtt)
    - ObservationService: Periodic tasks (habitat_session)

Lifecycle:
    1. Load configuration from YAML
    2. Setup logging (console + file)
    3. Load persisted session
    4. Create and connect publisher
    5. Create ObservationService
    6. Start service (non-blocking)
    7. Wait for stop signal (Ctrl+C or SIGTERM)
    8. Graceful shutdown

Signals:
    - SIGTERM: Graceful shutdown
    - SIGINT (Ctrl+C): Graceful shutdown

Logs:
    - Console: INFO level
    - File: logs/observer.log (INFO level)
"""

import argparse
import signal
import sys
import logging
from pathlib import Path
from typing import Optional

from habitat_session import (
    FileKeyValueStore,
    ObservationService,
    SessionConfig,
    SessionContext,
    SessionStorage,
    SyncQueue,
)
from habitat_mqtt import ObservationPublisher, create_logger


# ─────────────────────────────────────────────────────────────────────────────
# Logging Setup
# ─────────────────────────────────────────────────────────────────────────────

def setup_logging(log_file: Optional[Path] = None) -> logging.Logger:
    """
    Setup logging for the observer service.

    Args:
        log_file: Optional path to log file (default: logs/observer.log)

    Returns:
        Logger instance for the service
    """
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            *(
                [logging.FileHandler(log_file)]
                if log_file
                else []
            )
        ]
    )

    return logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Main Service
# ─────────────────────────────────────────────────────────────────────────────

class ObserverApp:
    """
    Main application wrapper for ObservationService.

    Handles:
    - Configuration loading
    - Component initialization (session, publisher, sync queue)
    - Signal handling (SIGTERM, SIGINT)
    - Graceful shutdown
    """

    def __init__(self, config_path: Path, log_file: Optional[Path] = None, record: bool = False):
        self.config_path = config_path
        self.log_file = log_file
        self.record = record
        self.logger = setup_logging(log_file)

        # Components (initialized in setup())
        self.config: Optional[SessionConfig] = None
        self.context: Optional[SessionContext] = None
        self.publisher: Optional[ObservationPublisher] = None
        self.service: Optional[ObservationService] = None

        self._shutdown_requested = False

    def setup(self):
        """
        Setup all components.

        A broker that cannot be reached is not fatal. connect() only waits
        a few seconds for the first link; paho-mqtt keeps retrying in the
        background with the configured backoff, and the sync loop resends
        pending/failed markers once the link is up.
        """
        self.logger.info("=" * 80)
        self.logger.info("🚀 Habitat Observer Service - Starting")
        self.logger.info("=" * 80)

        # 1. Load configuration
        self.logger.info(f"📄 Loading configuration: {self.config_path}")
        self.config = SessionConfig.from_yaml(self.config_path)
        self.logger.info(f"✅ Configuration loaded (session_id={self.config.session_id})")

        # 2. Load persisted session
        self.context = SessionContext(
            self.config,
            SessionStorage(FileKeyValueStore(self.config.storage_dir)),
        )
        self.context.init()
        self.logger.info(f"✅ Session loaded from {self.config.storage_dir}")

        # 3. Create publisher (the sync sink)
        mqtt_config = self.config.mqtt_config
        self.publisher = ObservationPublisher(
            broker_host=mqtt_config.broker,
            broker_port=mqtt_config.port,
            topic=self.config.observation_topic,
            logger=create_logger(component="mqtt_publisher"),
            client_id=f"observer_{self.config.session_id}",
            username=mqtt_config.username,
            password=mqtt_config.password,
            qos=mqtt_config.qos,
            reconnect_min_delay=mqtt_config.reconnect_min_delay,
            reconnect_max_delay=mqtt_config.reconnect_max_delay,
        )
        self.logger.info(f"  - Observation topic: {self.config.observation_topic}")
        if not self.publisher.connect(timeout=5.0):
            self.logger.warning("⚠️  Broker not reachable yet, retrying in background; markers stay queued")

        # 4. Create service
        sync_queue = SyncQueue(self.context, self.publisher, logger=create_logger(component="sync"))
        self.service = ObservationService(self.context, sync_queue)
        self.logger.info("✅ Service created")
        self.logger.info("=" * 80)

    def run(self):
        """
        Run the observer service.

        Blocks until shutdown is requested (via signal or exception).
        """
        if not self.service:
            raise RuntimeError("Service not initialized. Call setup() first.")

        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

        try:
            self.service.start()
            if self.record:
                self.service.start_recording()
                self.logger.info(f"⏱️  Recording interval {self.context.timer.label}")

            self.logger.info("✅ Service started successfully")
            self.logger.info("Press Ctrl+C to stop")
            self.logger.info("=" * 80)

            self.service.wait()

        except KeyboardInterrupt:
            self.logger.info("\n⚠️  KeyboardInterrupt received")
            self.shutdown()

        except Exception as e:
            self.logger.error(f"❌ Service error: {e}", exc_info=True)
            self.shutdown()
            sys.exit(1)

    def shutdown(self):
        """
        Graceful shutdown of all components.

        Order:
        1. Stop service (timer, sync, playback tasks)
        2. Disconnect publisher
        """
        if self._shutdown_requested:
            self.logger.warning("⚠️  Shutdown already in progress")
            return

        self._shutdown_requested = True

        self.logger.info("=" * 80)
        self.logger.info("🛑 Shutting down observer service")
        self.logger.info("=" * 80)

        if self.service:
            try:
                stats = self.service.get_stats()
                self.service.stop()
                self.logger.info(f"✅ Service stopped ({stats['badge_text']})")
            except Exception as e:
                self.logger.error(f"❌ Error stopping service: {e}")

        if self.publisher:
            try:
                self.publisher.disconnect()
                self.logger.info("✅ Publisher disconnected")
            except Exception as e:
                self.logger.error(f"❌ Error disconnecting publisher: {e}")

        self.logger.info("=" * 80)
        self.logger.info("✅ Shutdown complete")
        self.logger.info("=" * 80)

    def _signal_handler(self, signum, frame):
        signal_name = signal.Signals(signum).name
        self.logger.info(f"\n⚠️  Received signal {signal_name} ({signum})")
        self.shutdown()
        sys.exit(0)


# ─────────────────────────────────────────────────────────────────────────────
# CLI
# ─────────────────────────────────────────────────────────────────────────────

def parse_args():
    parser = argparse.ArgumentParser(
        description="Habitat Observer Service - interval timer + MQTT auto-send",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start with default config
  uv run python run_observer_service.py --config config/observer_config.yaml

  # Start and begin recording immediately
  uv run python run_observer_service.py --config config/observer_config.yaml --record

  # Console logging only
  uv run python run_observer_service.py --config config/observer_config.yaml --no-log-file
        """
    )

    parser.add_argument(
        '--config',
        type=Path,
        required=True,
        help='Path to session configuration YAML file'
    )

    parser.add_argument(
        '--log-file',
        type=Path,
        default=Path('logs/observer.log'),
        help='Path to log file (default: logs/observer.log)'
    )

    parser.add_argument(
        '--no-log-file',
        action='store_true',
        help='Disable file logging (console only)'
    )

    parser.add_argument(
        '--record',
        action='store_true',
        help='Start the interval timer on launch'
    )

    return parser.parse_args()


def main():
    args = parse_args()

    log_file = None if args.no_log_file else args.log_file

    if not args.config.exists():
        print(f"❌ Error: Configuration file not found: {args.config}", file=sys.stderr)
        sys.exit(1)

    app = ObserverApp(
        config_path=args.config,
        log_file=log_file,
        record=args.record,
    )

    try:
        app.setup()
        app.run()
    except Exception as e:
        print(f"❌ Fatal error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
