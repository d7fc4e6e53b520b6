"""Daily trigger: run a job once a day at a fixed local time."""

import logging
import time as _time
from datetime import datetime, time, timedelta, tzinfo
from typing import Callable, Optional

from dateutil import tz

from .errors import ConfigError

logger = logging.getLogger(__name__)


def parse_time_string(value: str) -> time:
    hour, minute = value.split(":")
    return time(int(hour), int(minute))


def get_zone(name: str) -> tzinfo:
    zone = tz.gettz(name)
    if zone is None:
        raise ConfigError(f"Unknown timezone: {name}")
    return zone


def next_run_at(now: datetime, at: time, zone: tzinfo) -> datetime:
    """Next occurrence of the local wall-clock time strictly after now."""
    local_now = now.astimezone(zone)
    target = datetime.combine(local_now.date(), at, tzinfo=zone)
    if target <= local_now:
        target = datetime.combine(local_now.date() + timedelta(days=1), at, tzinfo=zone)
    return target


def run_daily(
    job: Callable[[], object],
    at: time,
    zone: tzinfo,
    sleep: Callable[[float], None] = _time.sleep,
    clock: Callable[[], datetime] = lambda: datetime.now(tz.UTC),
    iterations: Optional[int] = None,
) -> None:
    """
    Sleep until the next run time, run the job, repeat.

    A failing job is logged and the loop carries on to the next day; the
    next run (or a manual trigger) is the retry. iterations limits the number
    of runs, mainly for tests; None runs forever.
    """
    runs = 0
    while iterations is None or runs < iterations:
        target = next_run_at(clock(), at, zone)
        logger.info("Next maintenance check at %s", target.isoformat())
        sleep(max(0.0, (target - clock()).total_seconds()))
        logger.info("Running daily maintenance check...")
        try:
            job()
        except Exception:
            logger.exception("Daily maintenance check failed")
        runs += 1
