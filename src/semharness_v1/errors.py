from __future__ import annotations

from pathlib import Path
from typing import Union


class HarnessError(Exception):
    """Base class for harness malfunctions.

    A failing test is never a HarnessError; it is a non-zero return code.
    """

    exit_code = 1


class ConfigurationError(HarnessError):
    exit_code = 2


class MissingArtifact(ConfigurationError):
    def __init__(self, path: Union[str, Path], role: str = "artifact") -> None:
        self.path = str(path)
        self.role = role
        super().__init__(f"missing {role}: {self.path}")


class InfrastructureError(HarnessError):
    exit_code = 127

    def __init__(self, command: str, reason: str) -> None:
        self.command = command
        self.reason = reason
        super().__init__(f"could not start {command}: {reason}")


class LedgerIOError(HarnessError):
    exit_code = 74

    def __init__(self, path: Union[str, Path], reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"ledger append failed for {self.path}: {reason}")
