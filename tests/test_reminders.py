from datetime import datetime, timedelta

import pytest

from wxhookbot.reminders import (
    CronJob,
    CronJobStore,
    JobType,
    Schedule,
    daily_schedule,
    expression_schedule,
    format_job_list,
    interval_schedule,
    monthly_schedule,
    parse_reminder,
    plugin_daily_schedule,
    restore_schedule,
    specify_time_schedule,
    weekly_schedule,
)

NOW = datetime(2023, 1, 1, 12, 0, 0)


def test_monthly_expression_follows_source_format():
    schedule = monthly_schedule(["", "8", "10:00:00", "10"])
    assert schedule.expression == "00 00 10 8 * *"


def test_monthly_next_run():
    schedule = parse_reminder("设置每月8号10:00:00的提醒", NOW)
    run = schedule.next_run(NOW)
    assert (run.day, run.hour, run.minute, run.second) == (8, 10, 0, 0)
    assert run > NOW


def test_monthly_31st_skips_short_months():
    schedule = parse_reminder("设置每月31号09:30:00的提醒", datetime(2023, 2, 1))
    run = schedule.next_run(datetime(2023, 2, 1))
    assert run.day == 31
    assert run.month == 3


@pytest.mark.parametrize("char,weekday", [("一", 0), ("三", 2), ("六", 5), ("日", 6), ("七", 6)])
def test_weekly_next_run_falls_on_weekday(char, weekday):
    schedule = parse_reminder(f"设置每周{char}10:00:00的提醒", NOW)
    run = schedule.next_run(NOW)
    assert run.weekday() == weekday
    assert (run.hour, run.minute, run.second) == (10, 0, 0)
    assert NOW < run <= NOW + timedelta(days=7)


def test_weekly_unknown_weekday():
    with pytest.raises(ValueError):
        weekly_schedule(["", "八", "10:00:00"])


def test_daily_runs_every_day():
    schedule = daily_schedule(["", "9:15:30", "9"])
    first = schedule.next_run(NOW)
    second = schedule.next_run(first)
    assert (first.hour, first.minute, first.second) == (9, 15, 30)
    assert second - first == timedelta(days=1)


def test_daily_same_day_if_still_ahead():
    schedule = parse_reminder("设置每天18:00:00的提醒", NOW)
    run = schedule.next_run(NOW)
    assert run.date() == NOW.date()
    assert run.hour == 18


def test_interval_first_run_one_interval_later():
    schedule = parse_reminder("设置每隔1小时的提醒", NOW)
    first = schedule.next_run(NOW)
    assert first == NOW + timedelta(hours=1)
    assert schedule.next_run(first) == NOW + timedelta(hours=2)


@pytest.mark.parametrize("unit,delta", [("秒", timedelta(seconds=30)), ("分钟", timedelta(minutes=30)),
                                        ("m", timedelta(minutes=30)), ("h", timedelta(hours=30))])
def test_interval_units(unit, delta):
    schedule = interval_schedule(["", "30", unit], NOW)
    assert schedule.interval == delta
    assert schedule.start == NOW + delta


def test_interval_day_unit_is_unsupported():
    with pytest.raises(ValueError):
        parse_reminder("设置每隔2d的提醒", NOW)


def test_interval_zero_rejected():
    with pytest.raises(ValueError):
        interval_schedule(["", "0", "秒"], NOW)


def test_specify_time_runs_once():
    schedule = parse_reminder("设置2023-06-01 15:00:00的提醒", NOW)
    at = datetime(2023, 6, 1, 15, 0, 0)
    assert schedule.once
    assert schedule.next_run(NOW) == at
    assert schedule.next_run(at) is None


def test_specify_time_in_past_rejected():
    with pytest.raises(ValueError, match="请不要设置过去的时间"):
        specify_time_schedule(["", "2022-06-01 15:00:00"], NOW)


def test_specify_time_invalid_date_rejected():
    with pytest.raises(ValueError):
        specify_time_schedule(["", "2023-02-30 15:00:00"], NOW)


def test_expression_every_ten_seconds():
    schedule = parse_reminder("设置表达式(*/10 * * * * *)的提醒", NOW)
    assert schedule.expression == "*/10 * * * * *"
    run = NOW
    for _ in range(5):
        nxt = schedule.next_run(run)
        assert nxt.second % 10 == 0
        assert timedelta(0) < nxt - run <= timedelta(seconds=10)
        run = nxt


def test_expression_out_of_range():
    with pytest.raises(ValueError):
        parse_reminder("设置表达式(61 * * * * *)的提醒", NOW)


def test_expression_day_or_weekday():
    schedule = expression_schedule(["", "0 0 0 15 * 1"])
    run = NOW
    for _ in range(6):
        run = schedule.next_run(run)
        assert run.day == 15 or run.weekday() == 0


def test_expression_never_matching():
    schedule = expression_schedule(["", "0 0 0 30 2 *"])
    assert schedule.next_run(NOW) is None


def test_schedule_requires_something():
    with pytest.raises(ValueError):
        Schedule()


def test_parse_reminder_ignores_other_text():
    assert parse_reminder("你好", NOW) is None
    assert parse_reminder("设置每天10:00:00执行插件", NOW) is None


def test_restore_plugin_job():
    job = CronJob(1, "1", JobType.PLUGIN, "设置每天08:00:00执行插件", "room", service="zaobao")
    schedule = restore_schedule(job, NOW)
    assert schedule == plugin_daily_schedule(["", "08:00:00", "08"])
    assert schedule.next_run(NOW).hour == 8


def test_restore_remind_job():
    job = CronJob(2, "2", JobType.REMIND, "设置每天10:15:00的提醒", "room", remind="hi")
    assert restore_schedule(job, NOW) == parse_reminder(job.desc, NOW)


def test_restore_unknown_desc():
    job = CronJob(3, "3", JobType.FUNC, "whatever", "room")
    assert restore_schedule(job, NOW) is None


def test_format_empty_list():
    assert format_job_list([]) == "\n当前共有0个定时任务"


def test_format_job_list():
    jobs = [
        CronJob(5, "5", JobType.REMIND, "设置每天10:00:00的提醒", "room", remind="喝水"),
        CronJob(6, "6", JobType.PLUGIN, "设置每天08:00:00执行插件", "room", service="zaobao"),
    ]
    text = format_job_list(jobs)
    assert text.startswith("\n当前共有2个定时任务:\n")
    assert "任务ID: 5\n任务类型: remind\n任务描述: 设置每天10:00:00的提醒\n任务内容: 喝水\n\n" in text
    assert "任务内容: zaobao" in text


@pytest.fixture
def store(tmp_path):
    with CronJobStore(tmp_path / "data" / "manager.db") as s:
        yield s


def test_store_round_trip(store):
    job = CronJob(7, "7", JobType.REMIND, "设置每天10:00:00的提醒", "room", remind="hi")
    store.add(job)
    assert store.all() == [job]
    assert store.list_for_group("room") == [job]
    assert store.list_for_group("other") == []


def test_store_delete(store):
    store.add(CronJob(8, "tag8", JobType.REMIND, "d", "room", remind="x"))
    assert store.delete(8) == "tag8"
    assert store.delete(8) is None
    assert store.all() == []


def test_store_delete_for_group_by_type(store):
    store.add(CronJob(1, "a", JobType.REMIND, "d", "room", remind="x"))
    store.add(CronJob(2, "b", JobType.PLUGIN, "d", "room", service="s"))
    store.add(CronJob(3, "c", JobType.REMIND, "d", "other", remind="y"))
    assert store.delete_for_group("room", JobType.REMIND) == ["a"]
    assert [j.id for j in store.all()] == [2, 3]
    assert store.delete_for_group("room") == ["b"]
    assert [j.id for j in store.all()] == [3]


def test_store_persists(tmp_path):
    path = tmp_path / "jobs.db"
    job = CronJob(9, "9", JobType.PLUGIN, "desc", "room", service="svc")
    with CronJobStore(path) as first:
        first.add(job)
    with CronJobStore(path) as second:
        assert second.all() == [job]