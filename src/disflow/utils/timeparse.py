from __future__ import annotations

import re
from collections.abc import Callable
from datetime import datetime, timedelta

_ABSOLUTE_RE = re.compile(r"^(\d{1,2})\.(\d{2})$")


class TimeTools:
    """``+N`` (minutes from now) and ``HH.MM`` (next occurrence) parsing."""

    def __init__(self, now: Callable[[], datetime] = datetime.now) -> None:
        self._now = now

    def now(self) -> datetime:
        return self._now()

    def parse(self, value: str) -> datetime:
        text = value.strip()
        if text.startswith("+"):
            try:
                minutes = int(text[1:])
            except ValueError:
                raise ValueError(
                    "Invalid time format: expected +N where N is a number"
                ) from None
            return self._now() + timedelta(minutes=minutes)

        match = _ABSOLUTE_RE.match(text)
        if match:
            hours, minutes = int(match.group(1)), int(match.group(2))
            if hours > 23 or minutes > 59:
                raise ValueError(
                    "Invalid time: hours must be 0-23, minutes must be 0-59"
                )
            now = self._now()
            target = now.replace(hour=hours, minute=minutes, second=0, microsecond=0)
            if target < now:
                target += timedelta(days=1)
            return target

        raise ValueError(
            'Invalid time format: use "+N" for relative or "HH.MM" for absolute'
        )

    def format(self, value: datetime) -> str:
        return value.strftime("%d.%m.%Y %H:%M")

    def unix(self, value: datetime | None = None) -> int:
        return int((value or self._now()).timestamp())
