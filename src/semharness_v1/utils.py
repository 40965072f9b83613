from __future__ import annotations

import os
import time
from pathlib import Path
from typing import Any, List

import orjson


def canonical_dumps(data: Any) -> bytes:
    return orjson.dumps(data, option=orjson.OPT_SORT_KEYS)


def read_json(path: Path) -> Any:
    return orjson.loads(path.read_bytes())


def now_ts_ns() -> int:
    return time.time_ns()


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def append_line(path: Path, line: str) -> None:
    """Append one newline-terminated record with a single O_APPEND write.

    The record is flushed to disk before returning. Raises OSError on any
    failure, including a short write.
    """
    ensure_dir(path.parent)
    data = os.fsencode(line) + b"\n"
    fd = os.open(path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o644)
    try:
        written = os.write(fd, data)
        if written != len(data):
            raise OSError(f"short write to {path}: {written} of {len(data)} bytes")
        os.fsync(fd)
    finally:
        os.close(fd)


def read_lines(path: Path) -> List[str]:
    if not path.exists():
        return []
    raw = path.read_bytes()
    lines = raw.split(b"\n")
    # last element is either empty or a record still being written
    complete = lines[:-1]
    return [os.fsdecode(line) for line in complete if line.strip()]
