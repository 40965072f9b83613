from __future__ import annotations

import difflib
import logging
import os
import signal
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Protocol, Tuple

from ..classifier import Strategy
from ..errors import ConfigurationError, MissingArtifact
from .process import ExecutionResult, ProcessRunner
from .tools import ToolConfig

logger = logging.getLogger(__name__)

CAPTURE_PREFIX = "semharness-output-"
TERMINATING_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGTERM", "SIGHUP") if hasattr(signal, name)
)


@dataclass(frozen=True)
class ExecutionRequest:
    artifact: Path
    strategy: Strategy
    extra_args: Tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)
    expected_output: Optional[Path] = None


@dataclass(frozen=True)
class StrategyOutcome:
    result: ExecutionResult
    diff: Optional[str] = None

    @property
    def returncode(self) -> int:
        return self.result.returncode

    @property
    def passed(self) -> bool:
        return self.result.passed


class StrategyExecutor(Protocol):
    def execute(self, request: ExecutionRequest) -> StrategyOutcome:
        ...


def _raise_exit(signum: int, frame: Any) -> None:
    raise SystemExit(128 + signum)


@contextmanager
def terminating_signals_raise() -> Iterator[None]:
    """Turn SIGTERM and SIGHUP into ``SystemExit(128 + signum)`` for the block.

    Signal handlers can only be installed from the main thread; elsewhere
    the block runs with the handlers untouched.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    previous: List[Tuple[int, Any]] = []
    try:
        for signum in TERMINATING_SIGNALS:
            previous.append((signum, signal.signal(signum, _raise_exit)))
        yield
    finally:
        for signum, handler in reversed(previous):
            signal.signal(signum, handler)


@contextmanager
def captured_output() -> Iterator[Path]:
    """Reserve a temporary capture file that is removed on every exit path."""
    fd, name = tempfile.mkstemp(prefix=CAPTURE_PREFIX)
    os.close(fd)
    path = Path(name)
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)


def output_diff(expected: Path, actual: Path) -> str:
    expected_lines = expected.read_text(encoding="utf-8", errors="replace").splitlines()
    actual_lines = actual.read_text(encoding="utf-8", errors="replace").splitlines()
    diff_lines = list(
        difflib.unified_diff(
            expected_lines,
            actual_lines,
            fromfile=f"a/{expected}",
            tofile="b/<output>",
            lineterm="",
        )
    )
    if not diff_lines:
        return ""
    return "\n".join(diff_lines) + "\n"


class DefaultExecutor:
    def __init__(self, runner: ProcessRunner, tools: ToolConfig) -> None:
        self.runner = runner
        self.tools = tools

    def execute(self, request: ExecutionRequest) -> StrategyOutcome:
        result = self.runner.run(
            self.tools.interpreter_cmd,
            self.tools.interpreter_args(request.artifact, request.extra_args),
            env=request.env,
        )
        return StrategyOutcome(result=result)


class ProofExecutor:
    def __init__(self, runner: ProcessRunner, tools: ToolConfig) -> None:
        self.runner = runner
        self.tools = tools

    def execute(self, request: ExecutionRequest) -> StrategyOutcome:
        if not request.artifact.is_file():
            logger.warning("proof artifact not found: %s", request.artifact)
            raise MissingArtifact(request.artifact, role="specification")
        result = self.runner.run(
            self.tools.prover_cmd,
            self.tools.prover_args(request.artifact, request.extra_args),
            env=request.env,
        )
        return StrategyOutcome(result=result)


class InteractiveExecutor:
    def __init__(self, runner: ProcessRunner, tools: ToolConfig) -> None:
        self.runner = runner
        self.tools = tools

    def execute(self, request: ExecutionRequest) -> StrategyOutcome:
        expected = request.expected_output
        if expected is None:
            raise ConfigurationError(
                f"interactive test {request.artifact} needs an expected output file"
            )
        if not expected.is_file():
            logger.warning("expected output not found: %s", expected)
            raise MissingArtifact(expected, role="expected output")
        with terminating_signals_raise(), captured_output() as actual:
            result = self.runner.run(
                self.tools.interpreter_cmd,
                self.tools.interpreter_args(request.artifact, request.extra_args),
                env=request.env,
            )
            actual.write_bytes(result.stdout)
            if result.passed:
                return StrategyOutcome(result=result)
            diff = output_diff(expected, actual)
        return StrategyOutcome(result=result, diff=diff or None)


def build_executor(
    strategy: Strategy, runner: ProcessRunner, tools: ToolConfig
) -> StrategyExecutor:
    executors: Dict[Strategy, StrategyExecutor] = {
        Strategy.PROOF: ProofExecutor(runner, tools),
        Strategy.INTERACTIVE: InteractiveExecutor(runner, tools),
        Strategy.DEFAULT: DefaultExecutor(runner, tools),
    }
    return executors[strategy]
