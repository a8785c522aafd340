"""Tests for the command-line entrypoint."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from trendpress.__main__ import build_parser, main


@pytest.fixture
def cli_env(sample_config, tmp_path, monkeypatch):
    monkeypatch.setenv("CONFIG_PATH", str(tmp_path / "config.yaml"))
    with patch("trendpress.__main__.setup_logging"):
        yield sample_config


def test_parser_publish_flags():
    args = build_parser().parse_args(["publish", "3", "--no-run"])
    assert args.command == "publish"
    assert args.draft_id == 3
    assert args.no_run is True


def test_parser_rejects_unknown_status():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["opportunities", "--status", "HOT"])


def test_init_db_and_stats(cli_env, capsys):
    main(["init-db"])
    assert "Database initialized" in capsys.readouterr().out

    main(["stats"])
    assert "No sync runs yet." in capsys.readouterr().out


def test_import_and_sync(cli_env, tmp_path, capsys):
    main(["init-db"])
    snapshots = tmp_path / "snapshots.json"
    snapshots.write_text(json.dumps([
        {"platform": "weibo", "title": "话题", "rank": 1, "captured_at": "2026-10-18T11:00:00"},
        {"platform": "weibo", "rank": 1},
    ]))
    main(["import-snapshots", str(snapshots)])
    assert "Imported 1 snapshots (1 failed)" in capsys.readouterr().out

    main(["sync", "--window-hours", "3"])
    result = json.loads(capsys.readouterr().out)
    assert result["failed_clusters"] == 0


def test_not_found_exits_with_code_2(cli_env, capsys):
    main(["init-db"])
    with pytest.raises(SystemExit) as exc:
        main(["discard", "99"])
    assert exc.value.code == 2
    assert "Opportunity not found: 99" in capsys.readouterr().err


def test_jobs_for_unknown_draft_is_empty(cli_env, capsys):
    main(["init-db"])
    capsys.readouterr()
    main(["jobs", "4"])
    assert json.loads(capsys.readouterr().out) == []
