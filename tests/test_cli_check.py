import json
import shutil
from pathlib import Path

from typer.testing import CliRunner

from yada_engine.cli import app

EXAMPLES = Path(__file__).resolve().parent.parent / "examples"

runner = CliRunner()


def test_cli_check_all_success():
    r = runner.invoke(app, ["--root", str(EXAMPLES / "project"), "check"])
    assert r.exit_code == 0, r.output
    assert "OK: All 6 DPs valid" in r.output


def test_cli_check_single_dp():
    r = runner.invoke(app, ["--root", str(EXAMPLES / "project"), "check", "auth"])
    assert r.exit_code == 0, r.output
    assert "OK: auth valid" in r.output


def test_cli_check_single_missing_dp():
    r = runner.invoke(app, ["--root", str(EXAMPLES / "project"), "check", "nope"])
    assert r.exit_code == 1
    assert "E_FILE_NOT_FOUND" in r.output


def test_cli_check_cycle():
    r = runner.invoke(app, ["--root", str(EXAMPLES / "cycle"), "check"])
    assert r.exit_code == 2
    assert "Circular dependency detected" in r.output


def test_cli_check_json_failure(tmp_path: Path):
    root = tmp_path / "project"
    shutil.copytree(EXAMPLES / "project", root)
    (root / "dps" / "extra.yada").write_text(
        "name: Extra\nnature: module\ndependencies: [ghost]\n", encoding="utf-8"
    )

    r = runner.invoke(app, ["--root", str(root), "check", "--format", "json"])

    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    assert payload["command"] == "check"
    assert payload["ok"] is False
    assert {e["code"] for e in payload["errors"]} == {"E_UNKNOWN_DEPENDENCY"}


def test_cli_check_warnings_do_not_fail(tmp_path: Path):
    (tmp_path / "dps").mkdir()
    (tmp_path / "dps" / "a.yada").write_text(
        "name: A\nsubdps:\n  1:\n    name: s\n    type: dependency\n", encoding="utf-8"
    )

    r = runner.invoke(app, ["--root", str(tmp_path), "check"])

    assert r.exit_code == 0, r.output
    assert "W_MISSING_REQUIREMENT" in r.output
    assert "OK: All 1 DPs valid" in r.output
