from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Protocol, Tuple, Union

from ..errors import LedgerIOError
from ..utils import append_line, read_lines

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PassRecord:
    path: str

    def to_line(self) -> str:
        return self.path


@dataclass(frozen=True)
class FailRecord:
    path: str

    def to_line(self) -> str:
        return self.path


@dataclass(frozen=True)
class RuntimeRecord:
    duration_s: int
    path: str

    def to_line(self) -> str:
        return f"{self.duration_s} {self.path}"

    @classmethod
    def parse(cls, line: str) -> "RuntimeRecord":
        duration, _, path = line.strip().partition(" ")
        if not path.strip():
            raise ValueError(f"runtime record without path: {line!r}")
        return cls(duration_s=int(duration), path=path.strip())


LedgerEntry = Union[PassRecord, FailRecord, RuntimeRecord]


def _check_path(path: str) -> str:
    if not path or "\n" in path or "\r" in path:
        raise ValueError(f"artifact path cannot be stored as one record: {path!r}")
    return path


class LedgerStore(Protocol):
    def record_outcome(self, path: str, passed: bool) -> None:
        ...

    def record_runtime(self, path: str, duration_s: int) -> None:
        ...

    def passing_paths(self) -> List[str]:
        ...

    def failing_paths(self) -> List[str]:
        ...

    def runtimes(self) -> List[RuntimeRecord]:
        ...


class FileLedger:
    """Three append-only text logs: passing paths, failing paths and runtimes.

    Every append is a single ``O_APPEND`` write followed by fsync, so parallel
    workers sharing the directory never see torn or merged lines. Reads always
    go back to disk.
    """

    def __init__(
        self,
        root: Path,
        passing_name: str = "passing.lst",
        failing_name: str = "failing.lst",
        runtimes_name: str = "runtimes.lst",
    ) -> None:
        self.root = Path(root)
        self.passing_path = self.root / passing_name
        self.failing_path = self.root / failing_name
        self.runtimes_path = self.root / runtimes_name

    def _append(self, target: Path, entry: LedgerEntry) -> None:
        try:
            append_line(target, entry.to_line())
        except OSError as exc:
            raise LedgerIOError(target, exc.strerror or str(exc)) from exc
        except UnicodeError as exc:
            raise LedgerIOError(target, f"unencodable path: {exc}") from exc
        logger.debug("ledger %s += %s", target.name, entry)

    def record_outcome(self, path: str, passed: bool) -> None:
        path = _check_path(path)
        if passed:
            self._append(self.passing_path, PassRecord(path))
        else:
            self._append(self.failing_path, FailRecord(path))

    def record_runtime(self, path: str, duration_s: int) -> None:
        self._append(self.runtimes_path, RuntimeRecord(int(duration_s), _check_path(path)))

    def passing_paths(self) -> List[str]:
        return read_lines(self.passing_path)

    def failing_paths(self) -> List[str]:
        return read_lines(self.failing_path)

    def runtimes(self) -> List[RuntimeRecord]:
        records: List[RuntimeRecord] = []
        for line in read_lines(self.runtimes_path):
            try:
                records.append(RuntimeRecord.parse(line))
            except ValueError:
                logger.warning("skipping malformed runtime record: %r", line)
        return records


class MemoryLedger:
    def __init__(self) -> None:
        self.entries: List[LedgerEntry] = []
        self._lock = threading.Lock()

    def record_outcome(self, path: str, passed: bool) -> None:
        path = _check_path(path)
        with self._lock:
            self.entries.append(PassRecord(path) if passed else FailRecord(path))

    def record_runtime(self, path: str, duration_s: int) -> None:
        with self._lock:
            self.entries.append(RuntimeRecord(int(duration_s), _check_path(path)))

    def passing_paths(self) -> List[str]:
        return [entry.path for entry in self.entries if isinstance(entry, PassRecord)]

    def failing_paths(self) -> List[str]:
        return [entry.path for entry in self.entries if isinstance(entry, FailRecord)]

    def runtimes(self) -> List[RuntimeRecord]:
        return [entry for entry in self.entries if isinstance(entry, RuntimeRecord)]


def summarize(ledger: LedgerStore, top: int = 10) -> Dict[str, object]:
    passing = set(ledger.passing_paths())
    failing = set(ledger.failing_paths())
    latest: Dict[str, int] = {}
    for record in ledger.runtimes():
        latest[record.path] = record.duration_s
    slowest: List[Tuple[str, int]] = sorted(
        latest.items(), key=lambda item: (-item[1], item[0])
    )[: max(top, 0)]
    return {
        "passing": len(passing),
        "failing": len(failing),
        "runs": len(latest),
        "total_seconds": sum(latest.values()),
        "slowest": [{"path": path, "seconds": seconds} for path, seconds in slowest],
    }
