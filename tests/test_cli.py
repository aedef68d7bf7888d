from __future__ import annotations

import json
from pathlib import Path

import pytest
import typer

import dynaview.cli as cli
from conftest import client_error
from dynaview.cache import COLLECTIONS_KEY, ResultCache, table_key
from dynaview.settings import load_settings


@pytest.fixture
def cli_env(tmp_path: Path, monkeypatch, fake_dynamo):
    def _settings():
        return load_settings(
            DV_CACHE_DIR=tmp_path / "cache",
            DV_LOG_DIR=tmp_path / "logs",
            DV_SCAN_SEGMENTS=4,
        )

    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "load_settings", _settings)
    monkeypatch.setattr(cli, "create_client", lambda settings: fake_dynamo)
    monkeypatch.setattr(cli, "setup_logging", lambda settings, console=False: tmp_path / "logs" / "dynaview.log")
    return ResultCache(cache_dir=tmp_path / "cache")


def test_cli_tables_lists_and_caches(cli_env, capsys):
    cli.tables(no_cache=False, verbose=False)

    assert capsys.readouterr().out.split() == ["Audit", "Orders", "Users"]
    assert cli_env.load(COLLECTIONS_KEY).data == ["Audit", "Orders", "Users"]


def test_cli_tables_served_from_fresh_cache(cli_env, fake_dynamo, capsys):
    cli_env.save(COLLECTIONS_KEY, ["Cached"])
    fake_dynamo.fail_list = client_error("AccessDeniedException", "denied", "ListTables")

    cli.tables(no_cache=False, verbose=False)

    assert capsys.readouterr().out.split() == ["Cached"]


def test_cli_tables_refreshes_fresh_cache_before_exit(cli_env, capsys):
    cli_env.save(COLLECTIONS_KEY, ["Cached"])

    cli.tables(no_cache=False, verbose=False)

    assert capsys.readouterr().out.split() == ["Cached"]
    assert cli_env.load(COLLECTIONS_KEY).data == ["Audit", "Orders", "Users"]
    assert not list(cli_env.cache_dir.glob("*.tmp"))


def test_cli_scan_refreshes_fresh_cache_before_exit(cli_env, capsys):
    cli_env.save(table_key("Users"), ['{"id": "stale"}'])

    cli.scan("Users", no_cache=False, output=None, segments=None, verbose=False)

    assert capsys.readouterr().out.splitlines() == ['{"id": "stale"}']
    assert sorted(json.loads(row)["id"] for row in cli_env.load(table_key("Users")).data) == ["u1", "u2"]


def test_cli_tables_failure_exits_nonzero(cli_env, fake_dynamo, capsys):
    fake_dynamo.fail_list = client_error("AccessDeniedException", "denied", "ListTables")

    with pytest.raises(typer.Exit) as exc:
        cli.tables(no_cache=True, verbose=False)

    assert exc.value.exit_code == 1
    assert "Could not list tables" in capsys.readouterr().err


def test_cli_scan_prints_json_lines(cli_env, capsys):
    cli.scan("Orders", no_cache=False, output=None, segments=None, verbose=False)

    rows = [json.loads(line) for line in capsys.readouterr().out.splitlines() if line.strip()]
    assert len({r["pk"] for r in rows}) == 250
    assert len(cli_env.load(table_key("Orders")).data) == 250


def test_cli_scan_to_file_with_segment_override(cli_env, fake_dynamo, tmp_path, capsys):
    out = tmp_path / "out" / "users.jsonl"

    cli.scan("Users", no_cache=True, output=out, segments=2, verbose=False)

    lines = out.read_text(encoding="utf-8").splitlines()
    assert sorted(json.loads(line)["id"] for line in lines) == ["u1", "u2"]
    assert {c["TotalSegments"] for c in fake_dynamo.scan_calls} == {2}
    assert "Wrote 2 rows" in capsys.readouterr().err


def test_cli_scan_unknown_table(cli_env, capsys):
    with pytest.raises(typer.Exit) as exc:
        cli.scan("Nope", no_cache=False, output=None, segments=None, verbose=False)

    assert exc.value.exit_code == 1
    assert "Could not describe table" in capsys.readouterr().err


def test_cli_cache_info(cli_env, capsys):
    cli_env.save(COLLECTIONS_KEY, ["Orders"])
    cli_env.save(table_key("Orders"), ["{}", "{}"])

    cli.cache_info()

    out = capsys.readouterr().out
    assert "Cache Entries" in out
    assert "Orders" in out
    assert "(collections)" in out


def test_cli_cache_info_empty(cli_env, capsys):
    cli.cache_info()
    assert "No cached results" in capsys.readouterr().out


def test_cli_cache_clear_requires_a_target(cli_env, capsys):
    with pytest.raises(typer.Exit) as exc:
        cli.cache_clear(table=None, all_=False, collections=False)

    assert exc.value.exit_code == 2
    assert "Nothing to clear" in capsys.readouterr().err


def test_cli_cache_clear_table_then_all(cli_env, capsys):
    cli_env.save(COLLECTIONS_KEY, ["Orders"])
    cli_env.save(table_key("Orders"), ["{}"])
    cli_env.save(table_key("Users"), ["{}"])

    cli.cache_clear(table="Orders", all_=False, collections=False)
    assert "Removed 1" in capsys.readouterr().out
    assert cli_env.load(table_key("Orders")) is None
    assert cli_env.load(COLLECTIONS_KEY) is not None

    cli.cache_clear(table=None, all_=True, collections=False)
    assert "Removed 2" in capsys.readouterr().out
    assert cli_env.info() == []
