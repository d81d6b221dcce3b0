"""Fixed-window arithmetic shared by the store and the read-only status view.

All rollovers are lazy: a window is only advanced when somebody looks at it
at or after its reset boundary, and the new window always starts at ``now``.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta

HOURLY_WINDOW = timedelta(hours=1)
DAILY_WINDOW = timedelta(hours=24)
MONTHLY_WINDOW = relativedelta(months=1)


@dataclass(frozen=True)
class WindowState:
    """A fixed-window counter as seen at a particular instant."""
    count: int
    reset_at: datetime
    rolled: bool = False


def roll_window(count: int, reset_at: datetime, now: datetime, span: timedelta) -> WindowState:
    """Zero the counter and restart the window if ``now`` reached ``reset_at``."""
    if now >= reset_at:
        return WindowState(count=0, reset_at=now + span, rolled=True)
    return WindowState(count=count, reset_at=reset_at)


def period_expired(period_end: datetime, now: datetime) -> bool:
    return now >= period_end


def next_period(now: datetime) -> tuple[datetime, datetime]:
    """Monthly accounting window starting at ``now``."""
    return now, now + MONTHLY_WINDOW


def seconds_until(moment: datetime, now: datetime) -> int:
    """Whole seconds until ``moment``, rounded up, never below 1."""
    return max(1, math.ceil((moment - now).total_seconds()))
