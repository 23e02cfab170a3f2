"""Scheduled reminders and plugin jobs: parsing, next-run times and storage."""

from __future__ import annotations

import re
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence, Union

REGEX_REMIND_EVERY_MONTH = (
    r"^设置每月(0?[1-9]|[12][0-9]|3[01])号(([01]?[0-9]|2[0-3]):[0-5][0-9]:[0-5][0-9])的提醒$"
)
REGEX_REMIND_EVERY_WEEK = (
    r"^设置每周(一|二|三|四|五|六|七|日)(([01]?[0-9]|2[0-3]):[0-5][0-9]:[0-5][0-9])的提醒$"
)
REGEX_REMIND_EVERY_DAY = r"^设置每天(([01]?[0-9]|2[0-3]):[0-5][0-9]:[0-5][0-9])的提醒$"
REGEX_REMIND_INTERVAL = r"^设置每隔(\d+)(s|秒|m|分|分钟|h|时|d|小时)的提醒$"
REGEX_REMIND_SPECIFY_TIME = (
    r"^设置((20[2-9][0-9]|2100)-(0[1-9]|1[0-2])-(0[1-9]|[12][0-9]|3[01])"
    r"\s([01][0-9]|2[0-3]):[0-5][0-9]:[0-5][0-9])的提醒$"
)
_CRON_FIELD = r"(\*(/\d+)?|((\d+(-\d+)?)(,\d+(-\d+)?)*))(/\d+)?"
REGEX_REMIND_EXPRESSION = (
    r"^设置表达式\((((\*(/\d+)?|((\d+(-\d+)?)(,\d+(-\d+)?)*))(/\d+)?)"
    + (r"\s+" + _CRON_FIELD) * 5
    + r")\)的提醒$"
)
REGEX_PLUGIN_EVERY_DAY = r"^设置每天(([01]?[0-9]|2[0-3]):[0-5][0-9]:[0-5][0-9])执行插件$"

_MONTH_RE = re.compile(REGEX_REMIND_EVERY_MONTH, re.ASCII)
_WEEK_RE = re.compile(REGEX_REMIND_EVERY_WEEK, re.ASCII)
_DAY_RE = re.compile(REGEX_REMIND_EVERY_DAY, re.ASCII)
_INTERVAL_RE = re.compile(REGEX_REMIND_INTERVAL, re.ASCII)
_SPECIFY_RE = re.compile(REGEX_REMIND_SPECIFY_TIME, re.ASCII)
_EXPRESSION_RE = re.compile(REGEX_REMIND_EXPRESSION, re.ASCII)
_PLUGIN_DAY_RE = re.compile(REGEX_PLUGIN_EVERY_DAY, re.ASCII)

_NUMBER = re.compile(r"[0-9]+")
_PAST_TIME = "请不要设置过去的时间"

# Cron day-of-week numbers, Sunday being 0.
_WEEKDAYS = {"一": 1, "二": 2, "三": 3, "四": 4, "五": 5, "六": 6, "七": 0, "日": 0}

_INTERVAL_UNITS = {
    "秒": timedelta(seconds=1), "s": timedelta(seconds=1),
    "分": timedelta(minutes=1), "分钟": timedelta(minutes=1), "m": timedelta(minutes=1),
    "时": timedelta(hours=1), "小时": timedelta(hours=1), "h": timedelta(hours=1),
}


class JobType(str, Enum):
    REMIND = "remind"
    FUNC = "func"
    PLUGIN = "plugin"


def _number(text: str) -> int:
    if not _NUMBER.fullmatch(text):
        raise ValueError(f"invalid number: {text!r}")
    return int(text)


def _parse_field(text: str, lo: int, hi: int) -> tuple[frozenset, bool]:
    values: set[int] = set()
    star = False
    for part in text.split(","):
        range_text, has_step, step_text = part.partition("/")
        step = _number(step_text) if has_step else 1
        if step < 1:
            raise ValueError(f"step must be positive: {part!r}")
        if range_text in ("*", "?"):
            start, end = lo, hi
            star = star or step == 1
        else:
            first, has_dash, last = range_text.partition("-")
            start = _number(first)
            end = _number(last) if has_dash else (hi if has_step else start)
        if start < lo or end > hi or start > end:
            raise ValueError(f"value out of range [{lo}, {hi}]: {part!r}")
        values.update(range(start, end + 1, step))
    return frozenset(values), star


@dataclass(frozen=True)
class _CronSpec:
    seconds: frozenset
    minutes: frozenset
    hours: frozenset
    days: frozenset
    months: frozenset
    weekdays: frozenset
    day_star: bool
    weekday_star: bool

    @classmethod
    def parse(cls, expression: str) -> "_CronSpec":
        fields = expression.split()
        if len(fields) != 6:
            raise ValueError(f"expected 6 fields, got {len(fields)}: {expression!r}")
        seconds, _ = _parse_field(fields[0], 0, 59)
        minutes, _ = _parse_field(fields[1], 0, 59)
        hours, _ = _parse_field(fields[2], 0, 23)
        days, day_star = _parse_field(fields[3], 1, 31)
        months, _ = _parse_field(fields[4], 1, 12)
        weekdays, weekday_star = _parse_field(fields[5], 0, 6)
        return cls(seconds, minutes, hours, days, months, weekdays, day_star, weekday_star)

    def _day_matches(self, t: datetime) -> bool:
        dom = t.day in self.days
        dow = (t.weekday() + 1) % 7 in self.weekdays
        if self.day_star or self.weekday_star:
            return dom and dow
        return dom or dow

    def next_after(self, after: datetime) -> Optional[datetime]:
        t = after.replace(microsecond=0) + timedelta(seconds=1)
        limit = t.year + 5
        while t.year <= limit:
            if t.month not in self.months:
                year, month = (t.year + 1, 1) if t.month == 12 else (t.year, t.month + 1)
                t = t.replace(year=year, month=month, day=1, hour=0, minute=0, second=0)
            elif not self._day_matches(t):
                t = t.replace(hour=0, minute=0, second=0) + timedelta(days=1)
            elif t.hour not in self.hours:
                t = t.replace(minute=0, second=0) + timedelta(hours=1)
            elif t.minute not in self.minutes:
                t = t.replace(second=0) + timedelta(minutes=1)
            elif t.second not in self.seconds:
                t += timedelta(seconds=1)
            else:
                return t
        return None


@dataclass(frozen=True)
class Schedule:
    """When a job runs: a 6-field cron expression, a fixed interval, or once."""

    expression: str = ""
    interval: Optional[timedelta] = None
    start: Optional[datetime] = None
    _spec: Optional[_CronSpec] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.expression:
            if self.interval is not None or self.start is not None:
                raise ValueError("a cron schedule takes no interval or start")
            object.__setattr__(self, "_spec", _CronSpec.parse(self.expression))
        elif self.interval is not None:
            if self.interval <= timedelta(0):
                raise ValueError("interval must be greater than 0")
            if self.start is None:
                raise ValueError("an interval schedule needs a start")
        elif self.start is None:
            raise ValueError("empty schedule")

    @property
    def once(self) -> bool:
        return not self.expression and self.interval is None

    def next_run(self, after: datetime) -> Optional[datetime]:
        """The first run strictly after the given moment, or None if there is none."""
        if self._spec is not None:
            return self._spec.next_after(after)
        assert self.start is not None
        if self.interval is None:
            return self.start if self.start > after else None
        if after < self.start:
            return self.start
        steps = (after - self.start) // self.interval + 1
        return self.start + steps * self.interval


def _clock(text: str) -> tuple[int, int, int]:
    hour, minute, second = (int(p) for p in text.split(":"))
    return hour, minute, second


def monthly_schedule(matched: Sequence[str]) -> Schedule:
    """matched[1] is the day of the month, matched[2] the time."""
    hour, minute, second = matched[2].split(":")
    return Schedule(expression=f"{second} {minute} {hour} {matched[1]} * *")


def weekly_schedule(matched: Sequence[str]) -> Schedule:
    """matched[1] is the weekday character, matched[2] the time."""
    weekday = _WEEKDAYS.get(matched[1])
    if weekday is None:
        raise ValueError(f"unknown weekday: {matched[1]!r}")
    hour, minute, second = _clock(matched[2])
    return Schedule(expression=f"{second} {minute} {hour} * * {weekday}")


def daily_schedule(matched: Sequence[str]) -> Schedule:
    """matched[1] is the time of day."""
    hour, minute, second = _clock(matched[1])
    return Schedule(expression=f"{second} {minute} {hour} * * *")


def interval_schedule(matched: Sequence[str], now: datetime) -> Schedule:
    """matched[1] is the count, matched[2] the unit; the first run is one interval from now."""
    unit = _INTERVAL_UNITS.get(matched[2])
    if unit is None:
        raise ValueError(f"unsupported interval unit: {matched[2]!r}")
    interval = _number(matched[1]) * unit
    return Schedule(interval=interval, start=now + interval)


def specify_time_schedule(matched: Sequence[str], now: datetime) -> Schedule:
    """A single run at the time in matched[1]; past times are refused."""
    try:
        at = datetime.strptime(matched[1], "%Y-%m-%d %H:%M:%S")
    except ValueError:
        raise ValueError(_PAST_TIME) from None
    at = at.replace(tzinfo=now.tzinfo)
    if at < now:
        raise ValueError(_PAST_TIME)
    return Schedule(start=at)


def expression_schedule(matched: Sequence[str]) -> Schedule:
    """matched[1] is a 6-field cron expression with seconds."""
    return Schedule(expression=matched[1])


def plugin_daily_schedule(matched: Sequence[str]) -> Schedule:
    """matched[1] is the time of day the plugin runs."""
    return daily_schedule(matched)


def _groups(match: re.Match) -> list[str]:
    return [match.group(0), *match.groups(default="")]


def parse_reminder(text: str, now: datetime) -> Optional[Schedule]:
    """The schedule a reminder command describes, or None if it is not one."""
    builders = (
        (_MONTH_RE, monthly_schedule),
        (_WEEK_RE, weekly_schedule),
        (_DAY_RE, daily_schedule),
        (_INTERVAL_RE, lambda m: interval_schedule(m, now)),
        (_SPECIFY_RE, lambda m: specify_time_schedule(m, now)),
        (_EXPRESSION_RE, expression_schedule),
    )
    for pattern, build in builders:
        match = pattern.fullmatch(text)
        if match:
            return build(_groups(match))
    return None


@dataclass
class CronJob:
    """A stored job, kept so that it can be restored after a restart."""

    id: int
    tag: str
    type: JobType
    desc: str
    group_id: str
    remind: str = ""
    service: str = ""


def restore_schedule(job: CronJob, now: datetime) -> Optional[Schedule]:
    """Rebuild a stored job's schedule from its description."""
    if job.type is JobType.REMIND:
        return parse_reminder(job.desc, now)
    if job.type is JobType.PLUGIN:
        match = _PLUGIN_DAY_RE.fullmatch(job.desc)
        if match:
            return plugin_daily_schedule(_groups(match))
    return None


def format_job_list(jobs: Sequence[CronJob]) -> str:
    """The reply listing a chat's jobs."""
    lines = []
    for job in jobs:
        if job.type is JobType.REMIND:
            content = job.remind
        elif job.type is JobType.PLUGIN:
            content = job.service
        else:
            continue
        lines.append(
            f"任务ID: {job.id}\n任务类型: {job.type.value}\n任务描述: {job.desc}\n任务内容: {content}\n\n"
        )
    if not jobs:
        return f"\n当前共有{len(jobs)}个定时任务"
    return f"\n当前共有{len(jobs)}个定时任务:\n{''.join(lines)}"


_COLUMNS = 'id, tag, type, "desc", group_id, remind, service'


class CronJobStore:
    """Jobs kept in an SQLite table named cronjob."""

    def __init__(self, path: Union[str, Path]):
        if str(path) != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(path))
        with self._conn:
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS cronjob ("
                "id INTEGER PRIMARY KEY, tag TEXT, type TEXT, \"desc\" TEXT, "
                "group_id TEXT, remind TEXT, service TEXT)"
            )

    def __enter__(self) -> "CronJobStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @staticmethod
    def _row(row: tuple) -> CronJob:
        job_id, tag, job_type, desc, group_id, remind, service = row
        return CronJob(job_id, tag or "", JobType(job_type), desc or "",
                       group_id or "", remind or "", service or "")

    def add(self, job: CronJob) -> None:
        with self._conn:
            self._conn.execute(
                f"INSERT INTO cronjob ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (job.id, job.tag, job.type.value, job.desc, job.group_id, job.remind, job.service),
            )

    def list_for_group(self, group_id: str) -> list[CronJob]:
        rows = self._conn.execute(
            f"SELECT {_COLUMNS} FROM cronjob WHERE group_id = ? ORDER BY id", (group_id,)
        )
        return [self._row(r) for r in rows]

    def all(self) -> list[CronJob]:
        rows = self._conn.execute(f"SELECT {_COLUMNS} FROM cronjob ORDER BY id")
        return [self._row(r) for r in rows]

    def delete(self, job_id: int) -> Optional[str]:
        """Delete one job; return its tag, or None if there was no such job."""
        with self._conn:
            row = self._conn.execute("SELECT tag FROM cronjob WHERE id = ?", (job_id,)).fetchone()
            if row is None:
                return None
            self._conn.execute("DELETE FROM cronjob WHERE id = ?", (job_id,))
        return row[0]

    def delete_for_group(self, group_id: str, job_type: Optional[JobType] = None) -> list[str]:
        """Delete a chat's jobs, optionally of one type; return their tags."""
        where, params = "group_id = ?", [group_id]
        if job_type is not None:
            where += " AND type = ?"
            params.append(job_type.value)
        with self._conn:
            tags = [r[0] for r in self._conn.execute(
                f"SELECT tag FROM cronjob WHERE {where} ORDER BY id", params)]
            self._conn.execute(f"DELETE FROM cronjob WHERE {where}", params)
        return tags

    def close(self) -> None:
        self._conn.close()