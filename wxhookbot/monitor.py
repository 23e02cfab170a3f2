"""Forwarding of official-account articles to chosen chats."""

from __future__ import annotations

import copy
import sqlite3
import xml.etree.ElementTree as ElementTree
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

# Mode 1 forwards everything a given official account publishes;
# mode 2 forwards any article whose title or description holds a keyword.
MODE_ACCOUNT = 1
MODE_KEYWORD = 2


def slice_union(a: Iterable[str], b: Iterable[str]) -> list[str]:
    """The distinct items of both sequences, first appearance first."""
    return list(dict.fromkeys([*a, *b]))


@dataclass(frozen=True)
class SubscriptionMessage:
    """An article message pushed by an official account."""

    title: str
    des: str
    from_username: str
    _root: ElementTree.Element = field(repr=False, compare=False)

    @classmethod
    def parse(cls, text: str) -> "SubscriptionMessage":
        """Read the message XML; raise ValueError if it is not a <msg> document."""
        try:
            root = ElementTree.fromstring(text)
        except ElementTree.ParseError as exc:
            raise ValueError(f"invalid message XML: {exc}") from exc
        if root.tag != "msg":
            raise ValueError(f"expected <msg>, got <{root.tag}>")
        return cls(
            title=root.findtext("appmsg/title", default=""),
            des=root.findtext("appmsg/des", default=""),
            from_username=root.findtext("fromusername", default=""),
            _root=root,
        )

    def with_sender(self, wx_id: str) -> "SubscriptionMessage":
        """A copy of the message that names the given account as its sender."""
        root = copy.deepcopy(self._root)
        sender = root.find("fromusername")
        if sender is None:
            sender = ElementTree.SubElement(root, "fromusername")
        sender.text = wx_id
        return SubscriptionMessage(self.title, self.des, wx_id, root)

    def to_xml(self) -> str:
        return ElementTree.tostring(self._root, encoding="unicode")


@dataclass
class Monitor:
    """One forwarding rule."""

    mode: int
    gh_wx_id: str = ""
    keys: str = ""
    push_wx_ids: str = ""


def _forward(message: SubscriptionMessage, monitor: Monitor, bot_wx_id: str) -> list[tuple[str, str]]:
    body = message.with_sender(bot_wx_id).to_xml()
    return [(wx_id, body) for wx_id in monitor.push_wx_ids.split(",")]


def forward_targets(
    monitors: Sequence[Monitor], from_wx_id: str, content: str, bot_wx_id: str
) -> list[tuple[str, str]]:
    """The (chat, XML) pairs an official-account message is to be forwarded as.

    Processing stops at the first rule whose message cannot be parsed.
    """
    targets: list[tuple[str, str]] = []
    for monitor in monitors:
        if monitor.mode == MODE_ACCOUNT:
            if monitor.gh_wx_id != from_wx_id:
                continue
            try:
                message = SubscriptionMessage.parse(content)
            except ValueError:
                return targets
            targets.extend(_forward(message, monitor, bot_wx_id))
        elif monitor.mode == MODE_KEYWORD:
            try:
                message = SubscriptionMessage.parse(content)
            except ValueError:
                return targets
            for key in monitor.keys.split(","):
                if key in message.title or key in message.des:
                    targets.extend(_forward(message, monitor, bot_wx_id))
    return targets


_COLUMNS = 'mode, gh_wxid, "keys", push_wxids'


class MonitorStore:
    """Forwarding rules kept in an SQLite table named monitor."""

    def __init__(self, path: Union[str, Path]):
        if str(path) != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(path))
        with self._conn:
            self._conn.execute(
                'CREATE TABLE IF NOT EXISTS monitor ('
                'mode INTEGER, gh_wxid TEXT, "keys" TEXT, push_wxids TEXT)'
            )

    def __enter__(self) -> "MonitorStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @staticmethod
    def _monitor(row: tuple) -> Monitor:
        mode, gh_wx_id, keys, push_wx_ids = row
        return Monitor(mode or 0, gh_wx_id or "", keys or "", push_wx_ids or "")

    def _first(self, where: str, params: Sequence) -> Optional[tuple[int, Monitor]]:
        row = self._conn.execute(
            f"SELECT rowid, {_COLUMNS} FROM monitor WHERE {where} ORDER BY rowid LIMIT 1",
            params,
        ).fetchone()
        if row is None:
            return None
        return row[0], self._monitor(row[1:])

    def _insert(self, monitor: Monitor) -> None:
        self._conn.execute(
            f"INSERT INTO monitor ({_COLUMNS}) VALUES (?, ?, ?, ?)",
            (monitor.mode, monitor.gh_wx_id, monitor.keys, monitor.push_wx_ids),
        )

    def set_account_forward(self, gh_wx_id: str, push_wx_ids: str) -> Monitor:
        """Forward all of an account's articles to the comma-separated chats."""
        with self._conn:
            found = self._first("mode = ? AND gh_wxid = ?", (MODE_ACCOUNT, gh_wx_id))
            if found is None:
                monitor = Monitor(MODE_ACCOUNT, gh_wx_id=gh_wx_id, push_wx_ids=push_wx_ids)
                self._insert(monitor)
                return monitor
            rowid, monitor = found
            monitor.push_wx_ids = ",".join(
                slice_union(push_wx_ids.split(","), monitor.push_wx_ids.split(","))
            )
            self._conn.execute(
                "UPDATE monitor SET push_wxids = ? WHERE rowid = ?",
                (monitor.push_wx_ids, rowid),
            )
            return monitor

    def set_keyword_forward(self, keys: str, push_wx_ids: str) -> Monitor:
        """Forward articles holding any of the comma-separated keywords."""
        with self._conn:
            found = self._first("mode = ?", (MODE_KEYWORD,))
            if found is None:
                monitor = Monitor(MODE_KEYWORD, keys=keys, push_wx_ids=push_wx_ids)
                self._insert(monitor)
                return monitor
            rowid, monitor = found
            monitor.keys = ",".join(slice_union(keys.split(","), monitor.keys.split(",")))
            monitor.push_wx_ids = ",".join(
                slice_union(push_wx_ids.split(","), monitor.push_wx_ids.split(","))
            )
            self._conn.execute(
                'UPDATE monitor SET "keys" = ?, push_wxids = ? WHERE rowid = ?',
                (monitor.keys, monitor.push_wx_ids, rowid),
            )
            return monitor

    def all(self) -> list[Monitor]:
        rows = self._conn.execute(f"SELECT {_COLUMNS} FROM monitor ORDER BY rowid")
        return [self._monitor(r) for r in rows]

    def close(self) -> None:
        self._conn.close()