"""Events delivered by the hook frameworks and the values they carry."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

# Qianxun numeric event codes.
_QX_ACCOUNT_CHANGE = 10014
_QX_GROUP_CHAT = 10008
_QX_PRIVATE_CHAT = 10009
_QX_SELF_MESSAGE = 10010
_QX_TRANSFER = 10006
_QX_MESSAGE_WITHDRAW = 10013
_QX_FRIEND_VERIFY = 10011
_QX_PAYMENT = 10007

# VLW event names (the friend-verify spelling is the framework's own).
_VLW_GROUP_CHAT = "EventGroupChat"
_VLW_PRIVATE_CHAT = "EventPrivateChat"
_VLW_DEVICE_CALLBACK = "EventDeviceCallback"
_VLW_FRIEND_VERIFY = "EventFrieneVerify"
_VLW_GROUP_NAME_CHANGE = "EventGroupNameChange"
_VLW_GROUP_MEMBER_ADD = "EventGroupMemberAdd"
_VLW_GROUP_MEMBER_DECREASE = "EventGroupMemberDecrease"

_SYSTEM_MESSAGE_TYPE = 10000
_AT_ALL = "@所有人"


class EventType(Enum):
    """Kind of an incoming event."""

    UNKNOWN = "unknown"
    SYSTEM = "system"
    GROUP_CHAT = "group_chat"
    PRIVATE_CHAT = "private_chat"
    MP_CHAT = "mp_chat"
    SELF_MESSAGE = "self_message"
    TRANSFER = "transfer"
    MESSAGE_WITHDRAW = "message_withdraw"
    FRIEND_VERIFY = "friend_verify"
    GROUP_MEMBER_INCREASE = "group_member_increase"
    GROUP_MEMBER_DECREASE = "group_member_decrease"


@dataclass
class User:
    """A friend, group, official account or group member."""

    wx_id: str = ""
    wx_num: str = ""
    nick: str = ""
    remark: str = ""
    nick_brief: str = ""
    nick_whole: str = ""
    remark_brief: str = ""
    remark_whole: str = ""
    en_brief: str = ""
    en_whole: str = ""
    v3: str = ""
    v4: str = ""
    sign: str = ""
    country: str = ""
    province: str = ""
    city: str = ""
    moments_background_img_url: str = ""
    avatar_min_url: str = ""
    avatar_max_url: str = ""
    sex: str = ""
    member_num: int = 0


@dataclass
class Message:
    id: str = ""
    type: int = 0
    content: str = ""


@dataclass
class Transfer:
    from_wx_id: str = ""
    msg_source: int = 0
    transfer_type: int = 0
    money: str = ""
    memo: str = ""
    transfer_id: str = ""
    transfer_time: str = ""


@dataclass
class Withdraw:
    from_type: int = 0
    from_group: str = ""
    from_wx_id: str = ""
    msg_source: int = 0
    msg: str = ""


@dataclass
class FriendVerify:
    wx_id: str = ""
    nick: str = ""
    v3: str = ""
    v4: str = ""
    avatar_url: str = ""
    content: str = ""
    scene: str = ""


@dataclass
class Event:
    """A normalised event, whichever framework it came from."""

    type: EventType = EventType.UNKNOWN
    robot_wx_id: str = ""
    is_at_me: bool = False
    from_unique_id: str = ""
    from_unique_name: str = ""
    from_group: str = ""
    from_group_name: str = ""
    from_wx_id: str = ""
    from_name: str = ""
    message: Optional[Message] = None
    subscription_message: Optional[Message] = None
    transfer: Optional[Transfer] = None
    withdraw: Optional[Withdraw] = None
    friend_verify: Optional[FriendVerify] = None
    raw_message: str = ""


@dataclass
class Contacts:
    """The bot's known friends, groups and official accounts."""

    friends: list[User] = field(default_factory=list)
    groups: list[User] = field(default_factory=list)
    mps: list[User] = field(default_factory=list)

    @staticmethod
    def _nick(users: list[User], wx_id: str) -> Optional[str]:
        return next((u.nick for u in users if u.wx_id == wx_id), None)

    def friend_nick(self, wx_id: str) -> Optional[str]:
        return self._nick(self.friends, wx_id)

    def group_nick(self, wx_id: str) -> Optional[str]:
        return self._nick(self.groups, wx_id)

    def mp_nick(self, wx_id: str) -> Optional[str]:
        return self._nick(self.mps, wx_id)


def _load(raw: str) -> Any:
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return None


def _lookup(data: Any, path: str) -> Any:
    for part in path.split("."):
        if isinstance(data, dict):
            data = data.get(part)
        elif isinstance(data, list) and part.isdigit() and int(part) < len(data):
            data = data[int(part)]
        else:
            return None
    return data


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _as_int(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            try:
                return int(float(value))
            except ValueError:
                return 0
    return 0


class _Doc:
    """Path-based access to a decoded JSON document."""

    def __init__(self, data: Any):
        self.data = data

    def str(self, path: str) -> str:
        return _as_str(_lookup(self.data, path))

    def int(self, path: str) -> int:
        return _as_int(_lookup(self.data, path))

    def list(self, path: str) -> list:
        value = _lookup(self.data, path)
        return value if isinstance(value, list) else []


def build_qianxun_event(raw: str, contacts: Optional[Contacts] = None) -> Event:
    """Build an event from a Qianxun callback body."""
    contacts = contacts or Contacts()
    doc = _Doc(_load(raw))
    event = Event()
    code = doc.int("event")

    if code == _QX_GROUP_CHAT:
        if doc.int("data.data.msgType") == _SYSTEM_MESSAGE_TYPE:
            event = Event(
                type=EventType.SYSTEM,
                message=Message(content=doc.str("data.data.msg")),
            )
        else:
            group = doc.str("data.data.fromWxid")
            event = Event(
                type=EventType.GROUP_CHAT,
                from_unique_id=group,
                from_group=group,
                from_wx_id=doc.str("data.data.finalFromWxid"),
                message=Message(
                    type=doc.int("data.data.msgType"),
                    content=doc.str("data.data.msg"),
                ),
            )
            robot = doc.str("wxid")
            at_list = [_as_str(v) for v in doc.list("data.data.atWxidList")]
            if robot in at_list and _AT_ALL not in event.message.content:
                event.is_at_me = True
            nick = contacts.group_nick(group)
            if nick is not None:
                event.from_group_name = nick
                event.from_unique_name = nick
    elif code == _QX_PRIVATE_CHAT:
        sender = doc.str("data.data.fromWxid")
        message = Message(
            type=doc.int("data.data.msgType"),
            content=doc.str("data.data.msg"),
        )
        if doc.int("data.data.fromType") == 3:
            event = Event(
                type=EventType.MP_CHAT,
                from_unique_id=sender,
                from_wx_id=sender,
                subscription_message=message,
            )
            nick = contacts.mp_nick(sender)
        else:
            event = Event(
                type=EventType.PRIVATE_CHAT,
                from_unique_id=sender,
                from_wx_id=sender,
                is_at_me=True,
                message=message,
            )
            nick = contacts.friend_nick(sender)
        if nick is not None:
            event.from_name = nick
            event.from_unique_name = nick
    elif code == _QX_SELF_MESSAGE:
        event = Event(
            type=EventType.SELF_MESSAGE,
            message=Message(
                type=doc.int("data.data.msgType"),
                content=doc.str("data.data.msg"),
            ),
        )
    elif code == _QX_TRANSFER:
        event = Event(
            type=EventType.TRANSFER,
            transfer=Transfer(
                from_wx_id=doc.str("data.data.fromWxid"),
                msg_source=doc.int("data.data.msgSource"),
                transfer_type=doc.int("data.data.transType"),
                money=doc.str("data.data.money"),
                memo=doc.str("data.data.memo"),
                transfer_id=doc.str("data.data.transferid"),
                transfer_time=doc.str("data.data.invalidtime"),
            ),
        )
    elif code == _QX_MESSAGE_WITHDRAW:
        from_type = doc.int("data.data.fromType")
        if from_type == 1:
            event = Event(
                type=EventType.MESSAGE_WITHDRAW,
                withdraw=Withdraw(
                    from_type=from_type,
                    from_wx_id=doc.str("data.data.fromWxid"),
                    msg_source=doc.int("data.data.msgSource"),
                    msg=doc.str("data.data.msg"),
                ),
            )
        elif from_type == 2:
            event = Event(
                type=EventType.MESSAGE_WITHDRAW,
                withdraw=Withdraw(
                    from_type=from_type,
                    from_group=doc.str("data.data.fromWxid"),
                    from_wx_id=doc.str("data.data.finalFromWxid"),
                    msg_source=doc.int("data.data.msgSource"),
                    msg=doc.str("data.data.msg"),
                ),
            )
    elif code == _QX_FRIEND_VERIFY:
        event = Event(
            type=EventType.FRIEND_VERIFY,
            friend_verify=FriendVerify(
                wx_id=doc.str("data.data.wxid"),
                nick=doc.str("data.data.nick"),
                v3=doc.str("data.data.v3"),
                v4=doc.str("data.data.v4"),
                avatar_url=doc.str("data.data.avatarMinUrl"),
                content=doc.str("data.data.content"),
                scene=doc.str("data.data.scene"),
            ),
        )
    # Account change and payment events carry nothing yet.

    event.robot_wx_id = doc.str("wxid")
    event.raw_message = raw
    return event


def build_vlw_event(raw: str, contacts: Optional[Contacts] = None) -> Event:
    """Build an event from a VLW callback body."""
    contacts = contacts or Contacts()
    doc = _Doc(_load(raw))
    event = Event()
    name = doc.str("Event")

    if name == _VLW_GROUP_CHAT:
        if doc.int("content.type") == _SYSTEM_MESSAGE_TYPE:
            event = Event(
                type=EventType.SYSTEM,
                message=Message(content=doc.str("content.msg")),
            )
        else:
            group = doc.str("content.from_group")
            group_name = doc.str("content.from_group_name")
            event = Event(
                type=EventType.GROUP_CHAT,
                from_unique_id=group,
                from_unique_name=group_name,
                from_group=group,
                from_group_name=group_name,
                from_wx_id=doc.str("content.from_wxid"),
                from_name=doc.str("content.from_name"),
                message=Message(
                    id=doc.str("content.msg_id"),
                    type=doc.int("content.type"),
                    content=doc.str("content.msg"),
                ),
            )
            robot = doc.str("content.robot_wxid")
            at_users = [u for u in doc.list("content.msg_source.atuserlist") if isinstance(u, dict)]
            mentioned = any(_as_str(u.get("wxid")) == robot for u in at_users)
            at_all = any(_as_str(u.get("nickname")) == _AT_ALL for u in at_users)
            if mentioned and not at_all:
                event.is_at_me = True
    elif name == _VLW_PRIVATE_CHAT:
        content_type = doc.int("content.type")
        sender = doc.str("content.from_wxid")
        sender_name = doc.str("content.from_name")
        if content_type == 49:
            if sender.startswith("gh_"):
                event = Event(
                    type=EventType.MP_CHAT,
                    from_unique_id=sender,
                    from_unique_name=sender_name,
                    from_wx_id=sender,
                    from_name=sender_name,
                    subscription_message=Message(
                        id=doc.str("content.msg_id"),
                        type=content_type,
                        content=doc.str("content.msg"),
                    ),
                )
                nick = contacts.mp_nick(sender)
                if nick is not None:
                    event.from_name = nick
        elif content_type == 2000:
            inner = _Doc(_load(doc.str("content.msg")))
            event = Event(
                type=EventType.TRANSFER,
                from_unique_id=sender,
                from_wx_id=sender,
                from_name=sender_name,
                transfer=Transfer(
                    from_wx_id=sender,
                    msg_source=inner.int("paysubtype"),
                    money=inner.str("money"),
                    memo=inner.str("pay_momo"),
                    transfer_id=inner.str("payer_pay_id"),
                ),
            )
        else:
            event = Event(
                type=EventType.PRIVATE_CHAT,
                is_at_me=True,
                from_unique_id=sender,
                from_unique_name=sender_name,
                from_wx_id=sender,
                from_name=sender_name,
                message=Message(
                    id=doc.str("content.msg_id"),
                    type=content_type,
                    content=doc.str("content.msg"),
                ),
            )
    elif name == _VLW_DEVICE_CALLBACK:
        if doc.int("content.type") == 1:
            event = Event(
                type=EventType.SELF_MESSAGE,
                message=Message(
                    id=doc.str("content.msg_id"),
                    type=doc.int("content.type"),
                    content=doc.str("content.msg"),
                ),
            )
    elif name == _VLW_GROUP_MEMBER_ADD:
        event.type = EventType.GROUP_MEMBER_INCREASE
    elif name == _VLW_GROUP_MEMBER_DECREASE:
        event.type = EventType.GROUP_MEMBER_DECREASE
    # Friend verify, group rename and the remaining events carry nothing yet.

    event.robot_wx_id = doc.str("content.robot_wxid")
    event.raw_message = raw
    return event