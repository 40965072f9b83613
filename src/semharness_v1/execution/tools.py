from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Tuple


def symbolic_token(name: str) -> str:
    return f"`{name}`(.KList)"


@dataclass(frozen=True)
class ToolConfig:
    interpreter_cmd: Tuple[str, ...] = ("krun",)
    prover_cmd: Tuple[str, ...] = ("kprove",)
    mode: str = "NORMAL"
    schedule: str = "BYZANTIUM"
    verification_module: str = "VERIFICATION"

    def interpreter_args(self, artifact: Path, extra: Sequence[str] = ()) -> List[str]:
        return [
            str(artifact),
            f"-cMODE={symbolic_token(self.mode)}",
            f"-cSCHEDULE={symbolic_token(self.schedule)}",
            *extra,
        ]

    def prover_args(self, artifact: Path, extra: Sequence[str] = ()) -> List[str]:
        return [str(artifact), "--def-module", self.verification_module, *extra]
