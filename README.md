# wxhookbot

Building blocks for a chat bot that works with a WeChat client through one of
two HTTP hook frameworks, **Qianxun** (千寻) and **VLW**:

- `wxhookbot.events` turns the frameworks' callback bodies into uniform
  `Event` objects;
- `wxhookbot.responses` decodes the frameworks' API responses into `User`
  objects;
- `wxhookbot.reminders` parses reminder commands into schedules, works out
  their next run times and stores jobs in SQLite;
- `wxhookbot.monitor` decides which chats an official-account (公众号)
  article is forwarded to, with rules stored in SQLite;
- `wxhookbot.images` saves sticker pictures and makes PNG thumbnails of GIFs.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Events

```python
from wxhookbot.events import Contacts, User, build_qianxun_event, build_vlw_event

contacts = Contacts(groups=[User(wx_id="123@chatroom", nick="家人群")])
event = build_qianxun_event(raw_body, contacts)
print(event.type, event.from_wx_id, event.message.content if event.message else "")
```

`build_qianxun_event(raw, contacts)` and `build_vlw_event(raw, contacts)` take
the callback body as text. The result's `type` is an `EventType`
(`GROUP_CHAT`, `PRIVATE_CHAT`, `MP_CHAT`, `SYSTEM`, `SELF_MESSAGE`,
`TRANSFER`, `MESSAGE_WITHDRAW`, `FRIEND_VERIFY`, `GROUP_MEMBER_INCREASE`,
`GROUP_MEMBER_DECREASE` or `UNKNOWN`). Depending on the kind, the event
carries a `Message`, a subscription `Message`, a `Transfer`, a `Withdraw` or a
`FriendVerify`; `robot_wx_id` and `raw_message` are always set. `is_at_me` is
true for private chats and for group messages that mention the robot without
an "@所有人". `Contacts` holds known friends, groups and official accounts, and
fills in names where the framework leaves them out. Bodies that are not valid
JSON give an `UNKNOWN` event.

## API responses

The `parse_qianxun_*` functions (`robot_info`, `object_info`, `friends`,
`groups`, `group_members`, `mps`) and the `parse_vlw_*` functions
(`object_info`, `friends`, `groups`, `group_members`, `mps`) take a decoded
JSON response and return a `User` or a list of them. Qianxun friend lists
leave out the built-in system accounts (`medianote`, `newsapp`, `fmessage`,
`floatbottle`). A field of the wrong JSON type raises `FrameworkError`;
`UnsupportedOperation` is a subclass of it.

## Reminders

```python
from datetime import datetime
from wxhookbot.reminders import parse_reminder

now = datetime.now()
schedule = parse_reminder("设置每天10:15:00的提醒", now)
print(schedule.next_run(now))
```

`parse_reminder(text, now)` understands these commands and returns `None` for
anything else:

- `设置每月8号10:00:00的提醒`
- `设置每周三10:00:00的提醒` (一 to 六, and 七 or 日 for Sunday)
- `设置每天10:00:00的提醒`
- `设置每隔1小时的提醒` (units s/秒, m/分/分钟, h/时/小时; the first run is one
  interval from now)
- `设置2030-01-01 15:00:00的提醒` (a time in the past raises `ValueError`)
- `设置表达式(*/10 * * * * *)的提醒` (six fields, seconds first)

The builders behind it (`monthly_schedule`, `weekly_schedule`,
`daily_schedule`, `interval_schedule`, `specify_time_schedule`,
`expression_schedule`, `plugin_daily_schedule`) can be called directly with
the regex groups. A `Schedule` is a cron expression, a fixed interval from a
start, or a single moment; `next_run(after)` gives the first run strictly
after `after`, or `None` when there is none.

`CronJobStore(path)` keeps `CronJob` records (`JobType.REMIND`,
`JobType.PLUGIN`, `JobType.FUNC`) in a `cronjob` table, with `add`, `all`,
`list_for_group`, `delete` and `delete_for_group`, and closes with `close()`
or as a context manager. `restore_schedule(job, now)` rebuilds a stored job's
schedule from its description, and `format_job_list(jobs)` writes the reply
that lists a chat's jobs.

## Official-account forwarding

```python
from wxhookbot.monitor import MonitorStore, forward_targets

with MonitorStore("data/monitor.db") as store:
    store.set_account_forward("gh_example", "wxid_a,wxid_b")
    store.set_keyword_forward("Python,发布", "123@chatroom")
    for chat, xml in forward_targets(store.all(), "gh_example", article_xml, "wxid_bot"):
        ...
```

A rule of mode 1 forwards everything one account publishes; a rule of mode 2
forwards articles whose title or description contains one of its keywords.
Setting a rule again merges the new chats (and keywords) into the existing
ones with `slice_union`. `forward_targets` returns `(chat, xml)` pairs in
which the message's `fromusername` is replaced by the bot's id.
`SubscriptionMessage.parse` reads the article XML and raises `ValueError` for
anything that is not a `<msg>` document.

## Images

`gif_to_png(src, dst)` writes the first frame of a GIF as an RGBA PNG.
`feature_image(cache_dir, url=..., b64=...)` saves a picture fetched from a
URL or given as base64 into the cache directory, names it after its detected
type, and returns `(original, thumbnail)` paths; for a GIF the thumbnail is a
PNG of its first frame, otherwise it is the original itself. Giving both or
neither of `url` and `b64` raises `ValueError`.

## What this package does not do

It has no command and no server: it does not receive callbacks over HTTP, it
does not send messages or call the frameworks' HTTP APIs, and it does not run
scheduled jobs by itself. Those parts are left to the application that uses
these building blocks.