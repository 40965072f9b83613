from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .execution.tools import ToolConfig
from .ledger.ledger import FileLedger


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SEMHARNESS_")

    interpreter_cmd: List[str] = Field(default_factory=lambda: ["krun"])
    prover_cmd: List[str] = Field(default_factory=lambda: ["kprove"])
    mode: str = "NORMAL"
    schedule: str = "BYZANTIUM"
    verification_module: str = "VERIFICATION"
    ledger_dir: Path = Path(".semharness")
    passing_file: str = "passing.lst"
    failing_file: str = "failing.lst"
    runtimes_file: str = "runtimes.lst"
    sample_seed: Optional[int] = None
    log_level: str = "WARNING"
    log_file: Optional[Path] = None

    def tools(self) -> ToolConfig:
        return ToolConfig(
            interpreter_cmd=tuple(self.interpreter_cmd),
            prover_cmd=tuple(self.prover_cmd),
            mode=self.mode,
            schedule=self.schedule,
            verification_module=self.verification_module,
        )

    def ledger(self) -> FileLedger:
        return FileLedger(
            self.ledger_dir,
            passing_name=self.passing_file,
            failing_name=self.failing_file,
            runtimes_name=self.runtimes_file,
        )
