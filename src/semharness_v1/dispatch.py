from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .classifier import Strategy, classify
from .config import Settings
from .errors import ConfigurationError
from .execution.executors import ExecutionRequest, StrategyOutcome, build_executor
from .execution.process import ProcessRunner, SubprocessRunner
from .ledger.ledger import LedgerStore
from .ledger.sampler import sample
from .utils import now_ts_ns

logger = logging.getLogger(__name__)

DEBUG_FLAG = "--debugger"
SEARCH_FLAG = "--search"

COMMANDS: Dict[str, str] = {
    "run": "run",
    "debug": "debug",
    "search": "search",
    "prove": "prove",
    "interpret": "interpret",
    "test": "test",
    "test-profile": "test_profile",
    "get-failing": "get_failing",
}


def exit_status(returncode: int) -> int:
    if returncode < 0:
        return 128 - returncode
    return returncode


class Harness:
    def __init__(
        self,
        settings: Settings,
        runner: Optional[ProcessRunner] = None,
        ledger: Optional[LedgerStore] = None,
    ) -> None:
        self.settings = settings
        self.tools = settings.tools()
        self.runner: ProcessRunner = runner if runner is not None else SubprocessRunner()
        self.ledger: LedgerStore = ledger if ledger is not None else settings.ledger()

    def _execute(
        self,
        artifact: Path,
        strategy: Strategy,
        extra_args: Sequence[str] = (),
        env: Optional[Mapping[str, str]] = None,
        expected_output: Optional[Path] = None,
    ) -> StrategyOutcome:
        request = ExecutionRequest(
            artifact=Path(artifact),
            strategy=strategy,
            extra_args=tuple(extra_args),
            env=dict(env or {}),
            expected_output=Path(expected_output) if expected_output is not None else None,
        )
        executor = build_executor(strategy, self.runner, self.tools)
        return executor.execute(request)

    def run(
        self,
        artifact: Path,
        extra_args: Sequence[str] = (),
        env: Optional[Mapping[str, str]] = None,
    ) -> StrategyOutcome:
        return self._execute(artifact, Strategy.DEFAULT, extra_args, env)

    def debug(
        self,
        artifact: Path,
        extra_args: Sequence[str] = (),
        env: Optional[Mapping[str, str]] = None,
    ) -> StrategyOutcome:
        return self._execute(artifact, Strategy.DEFAULT, [DEBUG_FLAG, *extra_args], env)

    def search(
        self,
        artifact: Path,
        extra_args: Sequence[str] = (),
        env: Optional[Mapping[str, str]] = None,
    ) -> StrategyOutcome:
        return self._execute(artifact, Strategy.DEFAULT, [SEARCH_FLAG, *extra_args], env)

    def prove(
        self,
        artifact: Path,
        extra_args: Sequence[str] = (),
        env: Optional[Mapping[str, str]] = None,
    ) -> StrategyOutcome:
        return self._execute(artifact, Strategy.PROOF, extra_args, env)

    def interpret(
        self,
        artifact: Path,
        extra_args: Sequence[str] = (),
        env: Optional[Mapping[str, str]] = None,
    ) -> StrategyOutcome:
        return self._execute(artifact, Strategy.DEFAULT, extra_args, env)

    def test(
        self,
        artifact: Path,
        expected_output: Optional[Path] = None,
        extra_args: Sequence[str] = (),
        env: Optional[Mapping[str, str]] = None,
    ) -> StrategyOutcome:
        strategy = classify(artifact)
        logger.debug("%s classified as %s", artifact, strategy.value)
        if expected_output is not None and strategy is not Strategy.INTERACTIVE:
            logger.warning(
                "%s classified as %s; ignoring expected output %s",
                artifact,
                strategy.value,
                expected_output,
            )
        return self._execute(artifact, strategy, extra_args, env, expected_output)

    def test_profile(
        self,
        artifact: Path,
        expected_output: Optional[Path] = None,
        extra_args: Sequence[str] = (),
        env: Optional[Mapping[str, str]] = None,
    ) -> StrategyOutcome:
        """Run ``test`` and append one outcome record, then one runtime record.

        Harness malfunctions propagate before anything is written.
        """
        start = now_ts_ns()
        outcome = self.test(artifact, expected_output, extra_args, env)
        elapsed_s = (now_ts_ns() - start) // 1_000_000_000
        path = str(artifact)
        self.ledger.record_outcome(path, outcome.passed)
        self.ledger.record_runtime(path, elapsed_s)
        return outcome

    def get_failing(self, count: int, seed: Optional[int] = None) -> List[str]:
        if seed is None:
            seed = self.settings.sample_seed
        return list(sample(self.ledger, count, seed=seed))


def dispatch(harness: Harness, command: str, *args: Any, **kwargs: Any) -> Any:
    method_name = COMMANDS.get(command)
    if method_name is None:
        raise ConfigurationError(f"unknown command: {command}")
    return getattr(harness, method_name)(*args, **kwargs)
