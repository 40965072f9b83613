import json
import os
import sys
from pathlib import Path
from typing import Callable

import orjson
import pytest
from typer.testing import CliRunner

from semharness_v1.cli import app
from semharness_v1.ledger.ledger import FileLedger


def _ledger(config_file: Path) -> FileLedger:
    return FileLedger(Path(orjson.loads(config_file.read_bytes())["ledger_dir"]))


def test_test_exit_status_is_transparent(
    config_file: Path, write_artifact: Callable[..., Path]
) -> None:
    runner = CliRunner()
    ok = write_artifact("tests/vm/ok.json", stdout="done\n")
    bad = write_artifact("tests/vm/bad.json", exit=3)
    result = runner.invoke(app, ["test", str(ok), "--config", str(config_file)])
    assert result.exit_code == 0, result.output
    assert "done" in result.stdout
    result = runner.invoke(app, ["test", str(bad), "--config", str(config_file)])
    assert result.exit_code == 3


def test_run_passes_mode_schedule_and_extra_args(
    config_file: Path, write_artifact: Callable[..., Path]
) -> None:
    artifact = write_artifact("prog.json", echo_args=True)
    result = CliRunner().invoke(
        app,
        [
            "run",
            str(artifact),
            "--mode",
            "VMTESTS",
            "--schedule",
            "FRONTIER",
            "--arg=--depth",
            "--config",
            str(config_file),
        ],
    )
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == [
        str(artifact),
        "-cMODE=`VMTESTS`(.KList)",
        "-cSCHEDULE=`FRONTIER`(.KList)",
        "--depth",
    ]


def test_env_option_reaches_tool(config_file: Path, write_artifact: Callable[..., Path]) -> None:
    artifact = write_artifact("prog.json", echo_env=["SCHEDULE"])
    result = CliRunner().invoke(
        app,
        ["interpret", str(artifact), "--env", "SCHEDULE=BERLIN", "--config", str(config_file)],
    )
    assert result.exit_code == 0, result.output
    assert result.stdout == "SCHEDULE=BERLIN\n"


def test_bad_env_option_is_rejected(config_file: Path, write_artifact: Callable[..., Path]) -> None:
    artifact = write_artifact("prog.json")
    result = CliRunner().invoke(
        app, ["interpret", str(artifact), "--env", "NOVALUE", "--config", str(config_file)]
    )
    assert result.exit_code != 0


def test_missing_proof_exits_with_configuration_error(config_file: Path, tmp_path: Path) -> None:
    missing = tmp_path / "tests" / "proofs" / "specs" / "x-spec"
    result = CliRunner().invoke(app, ["test-profile", str(missing), "--config", str(config_file)])
    assert result.exit_code == 2
    assert "x-spec" in result.output
    ledger = _ledger(config_file)
    assert ledger.failing_paths() == []
    assert ledger.runtimes() == []


def test_missing_tool_exits_127(tmp_path: Path, write_artifact: Callable[..., Path]) -> None:
    config = tmp_path / "broken.json"
    config.write_bytes(orjson.dumps({"interpreter_cmd": [str(tmp_path / "no-krun")]}))
    artifact = write_artifact("prog.json")
    result = CliRunner().invoke(app, ["run", str(artifact), "--config", str(config)])
    assert result.exit_code == 127
    assert "no-krun" in result.output


def test_interactive_prints_diff_on_failure(
    config_file: Path, tmp_path: Path, write_artifact: Callable[..., Path]
) -> None:
    expected = tmp_path / "sum.expected"
    expected.write_text("55\n", encoding="utf-8")
    artifact = write_artifact("tests/interactive/sum.json", stdout="54\n", exit=1)
    result = CliRunner().invoke(
        app, ["test", str(artifact), str(expected), "--config", str(config_file)]
    )
    assert result.exit_code == 1
    # captured stdout first, then the diff on stderr
    assert result.output.startswith("54\n")
    assert "-55" in result.output
    assert "+54" in result.output


def test_interactive_without_expected_file_is_configuration_error(
    config_file: Path, write_artifact: Callable[..., Path]
) -> None:
    artifact = write_artifact("tests/interactive/sum.json")
    result = CliRunner().invoke(app, ["test", str(artifact), "--config", str(config_file)])
    assert result.exit_code == 2


def test_profile_then_get_failing(config_file: Path, write_artifact: Callable[..., Path]) -> None:
    runner = CliRunner()
    failing = [write_artifact(f"tests/vm/fail{idx}.json", exit=1) for idx in range(4)]
    passing = write_artifact("tests/vm/pass.json")
    for artifact in [*failing, passing]:
        runner.invoke(app, ["test-profile", str(artifact), "--config", str(config_file)])

    ledger = _ledger(config_file)
    assert ledger.passing_paths() == [str(passing)]
    assert sorted(ledger.failing_paths()) == sorted(str(path) for path in failing)
    assert len(ledger.runtimes()) == 5

    result = runner.invoke(
        app, ["get-failing", "3", "--json", "--seed", "11", "--config", str(config_file)]
    )
    assert result.exit_code == 0, result.output
    picked = json.loads(result.stdout)
    assert len(picked) == 3
    assert set(picked) <= {str(path) for path in failing}

    again = runner.invoke(
        app, ["get-failing", "3", "--json", "--seed", "11", "--config", str(config_file)]
    )
    assert json.loads(again.stdout) == picked

    plain = runner.invoke(app, ["get-failing", "10", "--config", str(config_file)])
    assert sorted(plain.stdout.splitlines()) == sorted(str(path) for path in failing)


def test_ledger_summary(config_file: Path, write_artifact: Callable[..., Path]) -> None:
    runner = CliRunner()
    ledger = _ledger(config_file)
    ledger.record_outcome("tests/a.json", True)
    ledger.record_runtime("tests/a.json", 4)
    ledger.record_outcome("tests/b.json", False)
    ledger.record_runtime("tests/b.json", 9)

    result = runner.invoke(app, ["ledger", "summary", "--json", "--config", str(config_file)])
    assert result.exit_code == 0, result.output
    report = json.loads(result.stdout)
    assert report["passing"] == 1
    assert report["failing"] == 1
    assert report["slowest"][0] == {"path": "tests/b.json", "seconds": 9}

    table = runner.invoke(app, ["ledger", "summary", "--config", str(config_file)])
    assert table.exit_code == 0
    assert "tests/b.json" in table.stdout


def test_ledger_summary_without_ledger(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        app, ["ledger", "summary", "--ledger-dir", str(tmp_path / "nope")]
    )
    assert result.exit_code == 2


@pytest.mark.parametrize(
    "payload",
    [b"{not json", b"[1, 2]", b'{"interpreter_cmd": 5}'],
    ids=["malformed", "not-an-object", "wrong-type"],
)
def test_invalid_config_file_is_configuration_error(
    tmp_path: Path, write_artifact: Callable[..., Path], payload: bytes
) -> None:
    config = tmp_path / "broken.json"
    config.write_bytes(payload)
    artifact = write_artifact("tests/vm/add.json")
    result = CliRunner().invoke(app, ["run", str(artifact), "--config", str(config)])
    assert result.exit_code == 2
    assert "invalid config" in result.output
    assert not isinstance(result.exception, (ValueError, orjson.JSONDecodeError))


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX byte paths")
def test_get_failing_prints_undecodable_paths_as_bytes(config_file: Path) -> None:
    path = os.fsdecode(b"tests/vm/caf\xe9.json")
    _ledger(config_file).record_outcome(path, False)
    runner = CliRunner()
    result = runner.invoke(app, ["get-failing", "--config", str(config_file)])
    assert result.exit_code == 0, result.output
    assert result.stdout_bytes == b"tests/vm/caf\xe9.json\n"

    result = runner.invoke(app, ["get-failing", "--json", "--config", str(config_file)])
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == ["tests/vm/caf\ufffd.json"]
