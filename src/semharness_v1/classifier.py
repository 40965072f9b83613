from __future__ import annotations

import re
from enum import Enum
from pathlib import PurePath
from typing import Tuple, Union

PROOF_SEGMENT = "proofs"
INTERACTIVE_SEGMENT = "interactive"

_SEPARATORS = re.compile(r"[\\/]+")


class Strategy(str, Enum):
    PROOF = "proof"
    INTERACTIVE = "interactive"
    DEFAULT = "default"


def path_segments(path: Union[str, PurePath]) -> Tuple[str, ...]:
    parts = _SEPARATORS.split(str(path))
    return tuple(part for part in parts if part and part != ".")


def classify(path: Union[str, PurePath]) -> Strategy:
    # order matters: a path under both proofs/ and interactive/ is a proof
    segments = path_segments(path)
    if PROOF_SEGMENT in segments:
        return Strategy.PROOF
    if INTERACTIVE_SEGMENT in segments:
        return Strategy.INTERACTIVE
    return Strategy.DEFAULT
