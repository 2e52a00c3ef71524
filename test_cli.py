"""
CLI tests against a file-backed session in a temporary directory.
"""

import socket

from habitat_cli.cli import build_parser, main
from habitat_session.csv_codec import REQUIRED_COLUMNS

CSV = "\n".join([
    ",".join(REQUIRED_COLUMNS),
    "2023-11-14T20:00:00.000Z,Observer 1,Habitat A,5,0,—,A-1,pilot,meal,0,0.2,0.2,,",
    "2023-11-14T20:05:00.000Z,Observer 1,Habitat A,5,1,—,B-2,medic,reading,1,0.8,0.8,Lab,",
])


def run(tmp_path, *argv):
    return main(["--session-dir", str(tmp_path / "session"), *argv])


def test_zones_add_list_delete(tmp_path, capsys):
    assert run(tmp_path, "zones", "add", "Galley", "0.1", "0.1", "0.4", "0.5") == 0
    out = capsys.readouterr().out
    assert "Added zone Galley." in out
    zone_id = out.split("id=")[1].rstrip(")\n")

    assert run(tmp_path, "zones", "list") == 0
    assert "Galley" in capsys.readouterr().out

    assert run(tmp_path, "zones", "add", "Tiny", "0.1", "0.1", "0.105", "0.5") == 1
    assert "Zone too small" in capsys.readouterr().err

    assert run(tmp_path, "zones", "delete", zone_id) == 0
    assert run(tmp_path, "zones") == 0
    assert "No zones defined." in capsys.readouterr().out


def test_import_timeline_and_export(tmp_path, capsys):
    csv_path = tmp_path / "obs.csv"
    csv_path.write_text(CSV, encoding="utf-8")

    assert run(tmp_path, "zones", "add", "Galley", "0.1", "0.1", "0.4", "0.5") == 0
    assert run(tmp_path, "import", str(csv_path)) == 0
    assert "Loaded 2 markers from CSV (replace)." in capsys.readouterr().out

    assert run(tmp_path, "timeline", "--role", "pilot") == 0
    out = capsys.readouterr().out
    assert "badge=A-1" in out
    assert "Galley" in out
    assert "B-2" not in out
    assert "1 of 2 markers" in out

    assert run(tmp_path, "timeline", "--playback", "0") == 0
    out = capsys.readouterr().out
    assert "Playback time: 20:00:00" in out
    assert "1 of 2 markers" in out

    assert run(tmp_path, "export", "--out", "-") == 0
    lines = capsys.readouterr().out.strip().split("\n")
    assert len(lines) == 3
    assert lines[1].endswith(",ok,import")

    out_dir = tmp_path / "exports"
    out_dir.mkdir()
    assert run(tmp_path, "export", "--out", str(out_dir)) == 0
    assert len(list(out_dir.glob("mission_observations_*.csv"))) == 1


def test_heatmap_and_reset(tmp_path, capsys):
    csv_path = tmp_path / "obs.csv"
    csv_path.write_text(CSV, encoding="utf-8")
    run(tmp_path, "import", str(csv_path))
    capsys.readouterr()

    assert run(tmp_path, "heatmap", "--grid", "10") == 0
    out = capsys.readouterr().out
    assert "Grid 10x10" in out
    assert "Meal / hydration" in out
    assert "#1f77b4" in out
    assert "\x1b[" not in out

    assert run(tmp_path, "reset") == 0
    run(tmp_path, "timeline")
    assert "0 of 0 markers" in capsys.readouterr().out


def test_import_missing_file_reports_error(tmp_path, capsys):
    assert run(tmp_path, "import", str(tmp_path / "missing.csv")) == 1
    assert "Import failed" in capsys.readouterr().err


def test_missing_config_fails(tmp_path, capsys):
    assert main(["--config", str(tmp_path / "nope.yaml"), "zones"]) == 1
    assert "Config file not found" in capsys.readouterr().err


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert "habitat-cli" in capsys.readouterr().out


def test_parser_accepts_review_filters():
    parser = build_parser()
    args = parser.parse_args(["timeline", "--activity", "meal", "--group-only"])

    assert args.activity == "meal"
    assert args.group_only is True


def test_sync_reports_unreachable_broker(tmp_path, capsys):
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]

    code = run(tmp_path, "sync", "--broker", "127.0.0.1", "--port", str(port), "--timeout", "0.2")

    assert code == 1
    assert "Unable to connect" in capsys.readouterr().err
