"""Cron trigger evaluation under a named timezone.

Expressions have six fields::

    second minute hour day-of-month month day-of-week

Each field accepts ``*``, literal values, ranges (``1-5``), lists (``1,15``),
steps (``*/10``) and month / weekday names. Day-of-week counts from Sunday
(0 or 7).

Fire times are computed on the local wall clock of the timezone and then
mapped back to real instants:

  - a wall time inside a spring-forward gap fires at the end of the gap
  - a wall time repeated by a fall-back transition fires only once, at its
    first occurrence
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import CroniterError, croniter
from loguru import logger

from job_scheduler.config import DEFAULT_TIMEZONE
from job_scheduler.errors import InvalidScheduleError, InvalidTimezoneError

CRON_FIELD_COUNT = 6

# Reference point used to check that an expression can fire at all
_PROBE_START = datetime(2000, 1, 1)


@dataclass(frozen=True)
class CronSchedule:
    expression: str

    def _wall_clock(self, start: datetime) -> croniter:
        return croniter(self.expression, start, second_at_beginning=True)

    def next_after(self, tz: ZoneInfo, after: datetime) -> datetime:
        """Return the first fire instant strictly after ``after``.

        A naive ``after`` is read as wall-clock time in ``tz``. The result is
        an aware datetime in ``tz``.
        """
        if after.tzinfo is None:
            after = after.replace(tzinfo=tz)
        after_utc = after.astimezone(timezone.utc)

        start = after.astimezone(tz).replace(tzinfo=None, microsecond=0, fold=0)
        wall_clock = self._wall_clock(start)
        while True:
            wall = wall_clock.get_next(datetime)
            instant = _localize(wall, tz)
            # Candidates in a repeated hour resolve to the first pass and can
            # land before the reference instant.
            if instant > after_utc:
                return instant.astimezone(tz)

    def iter_fire_times(self, tz: ZoneInfo, after: datetime) -> Iterator[datetime]:
        current = after
        while True:
            current = self.next_after(tz, current)
            yield current


def parse_cron(expression: str) -> CronSchedule:
    """Validate a six-field cron expression.

    Raises:
        InvalidScheduleError: if the expression has the wrong number of
            fields, a field cannot be parsed, or it can never fire.
    """
    if not isinstance(expression, str):
        raise InvalidScheduleError(repr(expression), "expression must be a string")

    normalized = " ".join(expression.split())
    fields = normalized.split(" ") if normalized else []
    if len(fields) != CRON_FIELD_COUNT:
        raise InvalidScheduleError(
            expression,
            f"expected {CRON_FIELD_COUNT} fields "
            f"(second minute hour day month weekday), got {len(fields)}",
        )

    fields[-1] = _sunday_as_zero(fields[-1])
    normalized = " ".join(fields)

    try:
        croniter(normalized, _PROBE_START, second_at_beginning=True).get_next(datetime)
    except (CroniterError, ValueError, KeyError) as e:
        raise InvalidScheduleError(expression, str(e)) from e

    return CronSchedule(normalized)


def _sunday_as_zero(weekdays: str) -> str:
    """Rewrite weekday 7 to 0, expanding ranges that end on it.

    croniter only takes 0-6 for the weekday field when seconds are enabled,
    so ``7`` becomes ``0`` and ``5-7`` becomes ``5,6,0``. Anything else is
    left for croniter to validate.
    """
    items = []
    for item in weekdays.split(","):
        base, slash, step = item.partition("/")
        first, dash, last = base.partition("-")
        if base == "7" and not slash:
            items.append("0")
        elif (
            dash
            and last == "7"
            and first.isdigit()
            and int(first) <= 7
            and (not slash or (step.isdigit() and int(step) > 0))
        ):
            values = range(int(first), 8, int(step) if slash else 1)
            items.extend(str(value % 7) for value in values)
        else:
            items.append(item)
    return ",".join(dict.fromkeys(items))


def resolve_timezone(name: str) -> ZoneInfo:
    """Look up an IANA timezone.

    Raises:
        InvalidTimezoneError: if the name is not in the timezone database.
    """
    if not name or not isinstance(name, str):
        raise InvalidTimezoneError(str(name))
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        raise InvalidTimezoneError(name) from e


def timezone_or_default(name: str) -> ZoneInfo:
    """Resolve ``name``, falling back to the default zone if it is unknown."""
    try:
        return resolve_timezone(name)
    except InvalidTimezoneError:
        logger.warning(f"Unknown timezone {name!r}, falling back to {DEFAULT_TIMEZONE}")
        return ZoneInfo(DEFAULT_TIMEZONE)


def next_fire_time(
    schedule: Union[CronSchedule, str],
    tz: Union[ZoneInfo, str],
    after: datetime,
) -> datetime:
    """Earliest instant strictly after ``after`` matching ``schedule`` in ``tz``."""
    if isinstance(schedule, str):
        schedule = parse_cron(schedule)
    if isinstance(tz, str):
        tz = resolve_timezone(tz)
    return schedule.next_after(tz, after)


def _localize(wall: datetime, tz: ZoneInfo) -> datetime:
    """Map a naive wall-clock time in ``tz`` to a UTC instant."""
    # fold=0 selects the first occurrence of an ambiguous time
    instant = wall.replace(tzinfo=tz, fold=0).astimezone(timezone.utc)
    if instant.astimezone(tz).replace(tzinfo=None) == wall:
        return instant
    return _gap_end(wall, tz)


def _gap_end(wall: datetime, tz: ZoneInfo) -> datetime:
    """Return the transition instant closing the gap that contains ``wall``."""
    before = wall.replace(tzinfo=tz, fold=1).astimezone(timezone.utc)
    after = wall.replace(tzinfo=tz, fold=0).astimezone(timezone.utc)
    lo, hi = sorted((int(before.timestamp()), int(after.timestamp())))

    target_offset = datetime.fromtimestamp(hi, tz).utcoffset()
    while hi - lo > 1:
        mid = (lo + hi) // 2
        if datetime.fromtimestamp(mid, tz).utcoffset() == target_offset:
            hi = mid
        else:
            lo = mid
    return datetime.fromtimestamp(hi, timezone.utc)
