#!filepath: worldtick/utils/clock.py
from __future__ import annotations

import time
from datetime import datetime, timezone

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS


class SystemClock:
    """墙钟（epoch 毫秒）"""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


class FrozenClock:
    """
    可控时钟：测试 / 回放使用。
    只有 advance() 会推进时间。
    """

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self._now = int(start_ms)

    def now_ms(self) -> int:
        return self._now

    def advance(self, ms: int) -> int:
        self._now += int(ms)
        return self._now

    def advance_minutes(self, minutes: float) -> int:
        return self.advance(int(minutes * MINUTE_MS))


def format_ms(ms: int | None) -> str:
    if not ms:
        return "-"
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def format_cents(cents: int | float) -> str:
    return f"${cents / 100:,.2f}"
