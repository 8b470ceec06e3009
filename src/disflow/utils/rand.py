from __future__ import annotations

import random
import re
from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")

_RANGE_RE = re.compile(r"^([a-zA-Z0-9])\s+to\s+([a-zA-Z0-9])$", re.IGNORECASE)


class RandomTools:
    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def number(self, minimum: int, maximum: int) -> int:
        """Random integer in ``[minimum, maximum]``."""
        return self._rng.randint(min(minimum, maximum), max(minimum, maximum))

    def string(self, pattern: str) -> str:
        """Random character from ``"A to Z"`` or random item from ``"a, b, c"``."""
        match = _RANGE_RE.match(pattern.strip())
        if match:
            start, end = ord(match.group(1)), ord(match.group(2))
            return chr(self.number(min(start, end), max(start, end)))
        items = [item.strip() for item in pattern.split(",") if item.strip()]
        if not items:
            raise ValueError(
                "Invalid pattern: must be a range (A to Z) or comma-separated list"
            )
        return self._rng.choice(items)

    def boolean(self) -> bool:
        return self._rng.random() < 0.5

    def pick(self, items: Sequence[T]) -> T:
        if not items:
            raise ValueError("items must be non-empty")
        return self._rng.choice(items)
