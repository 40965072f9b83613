from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Protocol, Sequence

from ..errors import InfrastructureError
from ..utils import now_ts_ns

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionResult:
    returncode: int
    stdout: bytes
    stderr: bytes
    duration_ns: int

    @property
    def passed(self) -> bool:
        return self.returncode == 0

    @property
    def duration_s(self) -> int:
        return self.duration_ns // 1_000_000_000


class ProcessRunner(Protocol):
    def run(
        self,
        command: Sequence[str],
        args: Sequence[str],
        env: Optional[Mapping[str, str]] = None,
        cwd: Optional[Path] = None,
    ) -> ExecutionResult:
        ...


def child_env(overrides: Optional[Mapping[str, str]]) -> Dict[str, str]:
    env = dict(os.environ)
    if overrides:
        env.update({str(key): str(value) for key, value in overrides.items()})
    return env


class SubprocessRunner:
    """Runs an external tool to completion and captures both output streams."""

    def run(
        self,
        command: Sequence[str],
        args: Sequence[str],
        env: Optional[Mapping[str, str]] = None,
        cwd: Optional[Path] = None,
    ) -> ExecutionResult:
        if not command:
            raise InfrastructureError("<empty>", "no command configured")
        argv = [*command, *args]
        logger.debug("spawn %s (cwd=%s)", argv, cwd)
        start = now_ts_ns()
        try:
            proc = subprocess.Popen(
                argv,
                cwd=cwd,
                env=child_env(env),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise InfrastructureError(argv[0], "executable not found") from exc
        except PermissionError as exc:
            raise InfrastructureError(argv[0], "permission denied") from exc
        except OSError as exc:
            raise InfrastructureError(argv[0], exc.strerror or exc.__class__.__name__) from exc
        with proc:
            try:
                stdout, stderr = proc.communicate()
            except BaseException:
                # interrupted harness: do not leave the tool running
                proc.kill()
                proc.wait()
                raise
        duration_ns = now_ts_ns() - start
        logger.debug("exit %s -> %d in %dns", argv[0], proc.returncode, duration_ns)
        return ExecutionResult(
            returncode=proc.returncode,
            stdout=stdout,
            stderr=stderr,
            duration_ns=duration_ns,
        )
