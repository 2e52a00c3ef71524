"""
Habitat CLI - Main entry point.

Provides a command-line interface over a file-backed observation session:
CSV interchange, zone editing, review queries and manual sync.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

import supervision as sv

from habitat_mqtt import ObservationPublisher, Timestamp, create_logger
from habitat_session import (
    FileKeyValueStore,
    SessionConfig,
    SessionContext,
    SessionStorage,
    SyncQueue,
)
from habitat_session.catalog import Activity, Role


def load_session(args: argparse.Namespace) -> SessionContext:
    """
    Build and load the session named by the global arguments.

    Raises:
        FileNotFoundError: If --config points to a missing file
        ValueError: If the YAML config is invalid
    """
    if args.config:
        path = Path(args.config)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {args.config}")
        config = SessionConfig.from_yaml(path)
    else:
        config = SessionConfig()

    session_dir = Path(args.session_dir) if args.session_dir else config.storage_dir
    context = SessionContext(config, SessionStorage(FileKeyValueStore(session_dir)))
    context.init()
    return context


def _report(result) -> int:
    if result.ok:
        print(f"✅ {result.message}")
        return 0
    print(f"❌ {result.message}", file=sys.stderr)
    return 1


def cmd_export(context: SessionContext, args: argparse.Namespace) -> int:
    if args.out == "-":
        sys.stdout.write(context.export_csv().content + "\n")
        return 0
    return _report(context.export_csv_file(Path(args.out)))


def cmd_import(context: SessionContext, args: argparse.Namespace) -> int:
    return _report(context.import_csv_file(Path(args.path), args.mode))


def cmd_zones(context: SessionContext, args: argparse.Namespace) -> int:
    if args.zones_command == "add":
        result = context.add_zone_from_drag(
            args.name, (args.x1, args.y1), (args.x2, args.y2)
        )
        if result.ok:
            print(f"✅ {result.message} (id={result.zone.id})")
            return 0
        return _report(result)

    if args.zones_command == "delete":
        return _report(context.delete_zone(args.zone_id))

    zones = context.zone_list()
    if not zones:
        print("No zones defined.")
    for zone in zones:
        print(
            f"{zone.id}  {zone.name:<20} "
            f"({zone.x1:.3f}, {zone.y1:.3f}) - ({zone.x2:.3f}, {zone.y2:.3f})"
        )
    return 0


def cmd_recompute_zones(context: SessionContext, args: argparse.Namespace) -> int:
    return _report(context.recompute_zones())


def _apply_review_args(context: SessionContext, args: argparse.Namespace) -> None:
    context.set_filter(
        role=args.role,
        activity=args.activity,
        group_only=args.group_only,
        badge_query=args.badge or "",
    )
    if args.playback is not None:
        context.set_playback_enabled(True)
        context.seek_playback(args.playback)


def cmd_timeline(context: SessionContext, args: argparse.Namespace) -> int:
    _apply_review_args(context, args)
    view = context.review_records()

    if context.playback_label:
        print(context.playback_label)
    for record in view:
        print(
            f"{Timestamp.from_epoch_ms(record.created_at).value}  badge={record.badge_number:<8} "
            f"{record.role.value:<14} {record.activity.value:<14} "
            f"{'group ' if record.is_group else ''}{record.zone}  "
            f"[{record.cloud_status.value if record.cloud_status else '-'}/{record.source.value}]"
        )
    print(f"{len(view)} of {len(context.records())} markers")
    return 0


def _swatch(color: sv.Color) -> str:
    """Two-cell truecolor block for terminals."""
    return f"\x1b[48;2;{color.r};{color.g};{color.b}m  \x1b[0m "


def cmd_heatmap(context: SessionContext, args: argparse.Namespace) -> int:
    _apply_review_args(context, args)
    settings = context.set_heatmap(enabled=True, grid=args.grid, strength=args.strength)

    cells = context.heatmap()
    print(f"Grid {settings.grid}x{settings.grid}, strength {settings.strength:.2f}")
    for cell in cells:
        print(f"{cell}  alpha={cell.alpha(settings.strength):.2f}")

    print("Legend:")
    use_ansi = sys.stdout.isatty()
    for activity, count in context.legend_counts().items():
        color = activity.color
        swatch = _swatch(color) if use_ansi else ""
        print(f"  {swatch}{activity.label:<16} {color.as_hex()}  {count}")
    return 0


def cmd_sync(context: SessionContext, args: argparse.Namespace) -> int:
    """Deliver eligible live records, stopping at the first failure."""
    mqtt_config = context.config.mqtt_config
    publisher = ObservationPublisher(
        broker_host=args.broker or mqtt_config.broker,
        broker_port=args.port or mqtt_config.port,
        topic=context.config.observation_topic,
        logger=create_logger("publisher"),
        client_id=f"habitat_cli_{context.config.session_id}",
        username=mqtt_config.username,
        password=mqtt_config.password,
        qos=mqtt_config.qos,
        reconnect_min_delay=mqtt_config.reconnect_min_delay,
        reconnect_max_delay=mqtt_config.reconnect_max_delay,
    )
    if not publisher.connect(timeout=args.timeout):
        publisher.disconnect()
        print(f"❌ Unable to connect to MQTT broker at {publisher.broker}", file=sys.stderr)
        return 1

    queue = SyncQueue(context, publisher)
    queue.enable()
    delivered = 0
    try:
        for _ in range(args.max):
            attempt = queue.tick()
            if attempt is None:
                break
            if not attempt.success:
                print(f"❌ Delivery failed for {attempt.record_id}: {attempt.error}", file=sys.stderr)
                break
            delivered += 1
    finally:
        publisher.disconnect()

    print(f"{queue.badge_text} - delivered {delivered}, pending {context.pending_sync_count()}")
    return 0 if queue.get_stats()['failures'] == 0 else 1


def cmd_reset(context: SessionContext, args: argparse.Namespace) -> int:
    return _report(context.reset())


COMMANDS = {
    'export': cmd_export,
    'import': cmd_import,
    'zones': cmd_zones,
    'recompute-zones': cmd_recompute_zones,
    'timeline': cmd_timeline,
    'heatmap': cmd_heatmap,
    'sync': cmd_sync,
    'reset': cmd_reset,
}


def _add_review_filters(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--role', choices=[r.value for r in Role], help='Only this role')
    parser.add_argument('--activity', choices=[a.value for a in Activity], help='Only this activity')
    parser.add_argument('--group-only', action='store_true', help='Only group markers')
    parser.add_argument('--badge', help='Badge number substring (case-insensitive)')
    parser.add_argument(
        '--playback',
        type=int,
        metavar='POS',
        help='Playback position in [0, 1000] (enables playback)'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="habitat-cli",
        description="Habitat CLI - Inspect and maintain an observation session",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Export all markers to the current directory
  habitat-cli --session-dir ./session_data export

  # Append markers from a CSV file
  habitat-cli import mission_observations_2025-03-01.csv --mode append

  # Define a zone and relabel existing markers
  habitat-cli zones add Galley 0.1 0.1 0.4 0.5
  habitat-cli recompute-zones

  # Review
  habitat-cli timeline --activity meal --playback 500
  habitat-cli heatmap --grid 20

  # Deliver pending markers
  habitat-cli sync --broker localhost
"""
    )

    # Global arguments
    parser.add_argument(
        "--config",
        help="Path to session configuration YAML"
    )
    parser.add_argument(
        "--session-dir",
        help="Session storage directory (default: storage_dir from config)"
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    export = subparsers.add_parser('export', help='Export markers to CSV')
    export.add_argument('--out', default='.', help="Output directory, or '-' for stdout")

    import_ = subparsers.add_parser('import', help='Import markers from CSV')
    import_.add_argument('path', help='CSV file')
    import_.add_argument('--mode', choices=['replace', 'append'], help='Merge policy (default: from config)')

    zones = subparsers.add_parser('zones', help='List, add or delete zones')
    zone_commands = zones.add_subparsers(dest='zones_command')
    zone_commands.add_parser('list', help='List zones (newest first)')
    zone_add = zone_commands.add_parser('add', help='Add a rectangle zone')
    zone_add.add_argument('name')
    for coord in ('x1', 'y1', 'x2', 'y2'):
        zone_add.add_argument(coord, type=float)
    zone_delete = zone_commands.add_parser('delete', help='Delete a zone by ID')
    zone_delete.add_argument('zone_id')

    subparsers.add_parser('recompute-zones', help='Re-resolve zones for all markers')

    timeline = subparsers.add_parser('timeline', help='Print the review timeline')
    _add_review_filters(timeline)

    heatmap = subparsers.add_parser('heatmap', help='Print heatmap cells and legend')
    _add_review_filters(heatmap)
    heatmap.add_argument('--grid', type=int, default=None, help='Grid resolution [5, 200]')
    heatmap.add_argument('--strength', type=float, default=None, help='Intensity [0.1, 1.0]')

    sync = subparsers.add_parser('sync', help='Deliver pending/failed live markers')
    sync.add_argument('--broker', help='MQTT broker host (default: from config)')
    sync.add_argument('--port', type=int, help='MQTT broker port (default: from config)')
    sync.add_argument('--timeout', type=float, default=5.0, help='Connect timeout in seconds')
    sync.add_argument('--max', type=int, default=1000, help='Maximum delivery attempts')

    subparsers.add_parser('reset', help='Clear all markers (zones are kept)')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        context = load_session(args)
        return COMMANDS[args.command](context, args)
    except Exception as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
