from .executors import (
    CAPTURE_PREFIX,
    DefaultExecutor,
    ExecutionRequest,
    InteractiveExecutor,
    ProofExecutor,
    StrategyExecutor,
    StrategyOutcome,
    build_executor,
    captured_output,
    output_diff,
    terminating_signals_raise,
)
from .process import ExecutionResult, ProcessRunner, SubprocessRunner, child_env
from .tools import ToolConfig, symbolic_token

__all__ = [
    "CAPTURE_PREFIX",
    "DefaultExecutor",
    "ExecutionRequest",
    "InteractiveExecutor",
    "ProofExecutor",
    "StrategyExecutor",
    "StrategyOutcome",
    "build_executor",
    "captured_output",
    "output_diff",
    "terminating_signals_raise",
    "ExecutionResult",
    "ProcessRunner",
    "SubprocessRunner",
    "child_env",
    "ToolConfig",
    "symbolic_token",
]
