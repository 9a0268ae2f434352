import json

import pytest

from driftwatch.cli import build_parser, main


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    """Keep rich from wrapping long paths in the output"""
    monkeypatch.setenv("COLUMNS", "240")


@pytest.fixture
def cli_args(tmp_path, policies_dir, live_state_path, database_url):
    def build(*extra):
        return [
            "--policies", str(policies_dir),
            "--live-state", str(live_state_path),
            "--database-url", database_url,
            "--export-dir", str(tmp_path / "exports"),
            *extra,
        ]
    return build


def test_parser_modes_are_exclusive(capsys):
    parser = build_parser()
    assert parser.parse_args(["--history"]).history == 10
    assert parser.parse_args(["--history", "3"]).history == 3
    assert parser.parse_args([]).history is None

    with pytest.raises(SystemExit):
        parser.parse_args(["--fix", "--clear"])


def test_dry_run_reports_drift(cli_args, live_state_path, capsys):
    before = live_state_path.read_text(encoding="utf-8")

    assert main(cli_args()) == 0

    out = capsys.readouterr().out
    assert "MODE: DRY RUN" in out
    assert "Total Resources Audited: 1" in out
    assert "Total Drift Issues Found: 2" in out
    assert "Status: NON_COMPLIANT" in out
    assert live_state_path.read_text(encoding="utf-8") == before


def test_fix_rewrites_live_state(cli_args, live_state_path, capsys):
    assert main(cli_args("--fix")) == 0

    out = capsys.readouterr().out
    assert "MODE: REMEDIATION" in out
    assert json.loads(live_state_path.read_text(encoding="utf-8")) == {
        "web-sg": {"active_rules": [
            {"id": "web-in", "port": 80, "protocol": "tcp"},
            {"id": "ssh-in", "port": 22, "protocol": "tcp"},
        ]}
    }

    assert main(cli_args()) == 0
    assert "Status: COMPLIANT" in capsys.readouterr().out


def test_history_export_and_clear(cli_args, tmp_path, capsys):
    assert main(cli_args()) == 0
    capsys.readouterr()

    assert main(cli_args("--history", "5")) == 0
    out = capsys.readouterr().out
    assert "HISTORICAL AUDIT LOGS (Last 2)" in out
    assert "rogue" in out
    assert "ssh-in" in out

    assert main(cli_args("--export")) == 0
    assert "successfully exported" in capsys.readouterr().out
    exports = list((tmp_path / "exports").glob("audit_export_*.csv"))
    assert len(exports) == 1

    assert main(cli_args("--clear")) == 0
    assert "Audit history cleared (2 events)" in capsys.readouterr().out

    assert main(cli_args("--history")) == 0
    assert "No audit history found." in capsys.readouterr().out


def test_export_empty_history_is_not_fatal(cli_args, capsys):
    assert main(cli_args("--export")) == 0
    assert "No logs found to export." in capsys.readouterr().out


def test_missing_policies_directory_is_fatal(cli_args, tmp_path, capsys):
    args = cli_args()
    args[1] = str(tmp_path / "nowhere")

    assert main(args) == 1
    assert "Policies directory not found" in capsys.readouterr().out


def test_invalid_live_state_is_fatal(cli_args, live_state_path, capsys):
    live_state_path.write_text("{not json", encoding="utf-8")

    assert main(cli_args()) == 1
    assert "not valid JSON" in capsys.readouterr().out


def test_negative_history_count(cli_args, capsys):
    assert main(cli_args("--history", "-1")) == 1


def test_invalid_utf8_live_state_is_fatal(cli_args, live_state_path, capsys):
    live_state_path.write_bytes(b'{"web-sg": "\xff"}')

    assert main(cli_args()) == 1
    assert "not valid UTF-8" in capsys.readouterr().out
