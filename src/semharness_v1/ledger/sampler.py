from __future__ import annotations

import random
from typing import Iterator, List, Optional

from .ledger import LedgerStore


def distinct_failing(ledger: LedgerStore) -> List[str]:
    seen: set[str] = set()
    paths: List[str] = []
    for path in ledger.failing_paths():
        if path not in seen:
            seen.add(path)
            paths.append(path)
    return paths


def sample(ledger: LedgerStore, count: int, seed: Optional[int] = None) -> Iterator[str]:
    """Yield up to ``count`` currently-failing paths in shuffled order.

    ``seed=None`` draws from OS entropy, so two calls usually differ; pass an
    integer for a reproducible triage list.
    """
    if count < 0:
        raise ValueError("count must be non-negative")
    paths = distinct_failing(ledger)
    rng = random.Random(seed)
    rng.shuffle(paths)
    yield from paths[:count]
