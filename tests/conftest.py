import logging
import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence

import orjson
import pytest

from semharness_v1.config import Settings
from semharness_v1.execution.process import ExecutionResult

FAKE_TOOL = Path(__file__).resolve().parent / "fixtures" / "fake_tool.py"


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    _ = config
    run_slow = os.getenv("RUN_SLOW_TESTS", "") or os.getenv("SEMHARNESS_RUN_SLOW", "")
    if str(run_slow).strip().lower() in {"1", "true", "yes"}:
        return
    skip_slow = pytest.mark.skip(reason="set SEMHARNESS_RUN_SLOW=1 to run slow tests")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class ScriptedRunner:
    """ProcessRunner fake that records calls and replays canned results."""

    def __init__(
        self,
        results: Optional[List[ExecutionResult]] = None,
        on_run: Optional[Callable[[], None]] = None,
    ) -> None:
        self.results = list(results or [])
        self.calls: List[Dict[str, Any]] = []
        self.on_run = on_run

    def run(
        self,
        command: Sequence[str],
        args: Sequence[str],
        env: Optional[Mapping[str, str]] = None,
        cwd: Optional[Path] = None,
    ) -> ExecutionResult:
        self.calls.append(
            {"command": list(command), "args": list(args), "env": dict(env or {}), "cwd": cwd}
        )
        if self.on_run is not None:
            self.on_run()
        if self.results:
            return self.results.pop(0)
        return ExecutionResult(returncode=0, stdout=b"", stderr=b"", duration_ns=0)


def result(returncode: int = 0, stdout: bytes = b"", stderr: bytes = b"") -> ExecutionResult:
    return ExecutionResult(returncode=returncode, stdout=stdout, stderr=stderr, duration_ns=1)


@pytest.fixture
def fake_tool_cmd() -> List[str]:
    return [sys.executable, str(FAKE_TOOL)]


@pytest.fixture
def write_artifact(tmp_path: Path) -> Callable[..., Path]:
    def _write(relpath: str, **directive: Any) -> Path:
        path = tmp_path / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(orjson.dumps(directive))
        return path

    return _write


@pytest.fixture
def settings(tmp_path: Path, fake_tool_cmd: List[str]) -> Settings:
    return Settings(
        interpreter_cmd=fake_tool_cmd,
        prover_cmd=fake_tool_cmd,
        ledger_dir=tmp_path / "ledger",
    )


@pytest.fixture
def config_file(tmp_path: Path, fake_tool_cmd: List[str]) -> Path:
    path = tmp_path / "semharness.json"
    path.write_bytes(
        orjson.dumps(
            {
                "interpreter_cmd": fake_tool_cmd,
                "prover_cmd": fake_tool_cmd,
                "ledger_dir": str(tmp_path / "ledger"),
            }
        )
    )
    return path
