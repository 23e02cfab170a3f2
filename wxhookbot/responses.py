"""Decoding of the frameworks' HTTP API responses into users."""

from __future__ import annotations

from typing import Any

from .events import User


class FrameworkError(Exception):
    """A framework API call failed or returned something unusable."""


class UnsupportedOperation(FrameworkError):
    """The framework does not offer the requested operation."""


_SYSTEM_USERS = frozenset({"medianote", "newsapp", "fmessage", "floatbottle"})


def _obj(value: Any, where: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise FrameworkError(f"{where}: expected an object")
    return value


def _list(value: Any, where: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise FrameworkError(f"{where}: expected an array")
    return [_obj(item, where) for item in value]


def _s(data: dict, key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise FrameworkError(f"{key}: expected a string")
    return value


def _i(data: dict, key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise FrameworkError(f"{key}: expected an integer")
    return value


def _root(payload: Any) -> dict:
    return _obj(payload, "response")


def parse_qianxun_robot_info(payload: Any) -> User:
    r = _obj(_root(payload).get("result"), "result")
    avatar = _s(r, "avatarUrl")
    return User(
        wx_id=_s(r, "wxid"),
        wx_num=_s(r, "wxNum"),
        nick=_s(r, "nick"),
        country=_s(r, "country"),
        province=_s(r, "province"),
        city=_s(r, "city"),
        avatar_min_url=avatar,
        avatar_max_url=avatar,
    )


def _qianxun_contact(r: dict, with_v4: bool = False) -> User:
    return User(
        wx_id=_s(r, "wxid"),
        wx_num=_s(r, "wxNum"),
        nick=_s(r, "nick"),
        remark=_s(r, "remark"),
        nick_brief=_s(r, "nickBrief"),
        nick_whole=_s(r, "nickWhole"),
        remark_brief=_s(r, "remarkBrief"),
        remark_whole=_s(r, "remarkWhole"),
        en_brief=_s(r, "enBrief"),
        en_whole=_s(r, "enWhole"),
        v3=_s(r, "v3"),
        v4=_s(r, "v4") if with_v4 else "",
        sign=_s(r, "sign"),
        country=_s(r, "country"),
        province=_s(r, "province"),
        city=_s(r, "city"),
        moments_background_img_url=_s(r, "momentsBackgroudImgUrl"),
        avatar_min_url=_s(r, "avatarMinUrl"),
        avatar_max_url=_s(r, "avatarMaxUrl"),
        sex=_s(r, "sex"),
        member_num=_i(r, "memberNum"),
    )


def parse_qianxun_object_info(payload: Any) -> User:
    return _qianxun_contact(_obj(_root(payload).get("result"), "result"), with_v4=True)


def parse_qianxun_friends(payload: Any) -> list[User]:
    """Friends, without the built-in system accounts."""
    users = [_qianxun_contact(r) for r in _list(_root(payload).get("result"), "result")]
    return [u for u in users if u.wx_id not in _SYSTEM_USERS]


def parse_qianxun_groups(payload: Any) -> list[User]:
    groups = []
    for r in _list(_root(payload).get("result"), "result"):
        groups.append(User(
            wx_id=_s(r, "wxid"),
            wx_num=_s(r, "wxNum"),
            nick=_s(r, "nick"),
            remark=_s(r, "remark"),
            nick_brief=_s(r, "nickBrief"),
            nick_whole=_s(r, "nickWhole"),
            remark_brief=_s(r, "remarkBrief"),
            remark_whole=_s(r, "remarkWhole"),
            en_brief=_s(r, "enBrief"),
            en_whole=_s(r, "enWhole"),
            member_num=_i(r, "memberNum"),
            avatar_min_url=_s(r, "avatarMinUrl"),
            avatar_max_url=_s(r, "avatarMaxUrl"),
        ))
    return groups


def parse_qianxun_group_members(payload: Any) -> list[User]:
    return [
        User(wx_id=_s(r, "wxid"), nick=_s(r, "groupNick"))
        for r in _list(_root(payload).get("result"), "result")
    ]


def parse_qianxun_mps(payload: Any) -> list[User]:
    mps = []
    for r in _list(_root(payload).get("result"), "result"):
        user = _qianxun_contact(r)
        _i(r, "memberNum")
        user.sex = ""
        user.member_num = 0
        mps.append(user)
    return mps


def _vlw_return(payload: Any) -> Any:
    return _root(payload).get("ReturnJson")


def parse_vlw_object_info(payload: Any) -> User:
    ret = _obj(_vlw_return(payload), "ReturnJson")
    d = _obj(ret.get("data"), "data")
    return User(
        wx_id=_s(d, "wxid"),
        wx_num=_s(d, "account"),
        nick=_s(d, "nickname"),
        remark=_s(d, "remark"),
        v3=_s(d, "v1"),
        v4=_s(d, "v2"),
        sign=_s(d, "signature"),
        country=_s(d, "country"),
        province=_s(d, "province"),
        city=_s(d, "city"),
        avatar_min_url=_s(d, "small_avatar"),
        avatar_max_url=_s(d, "avatar"),
        sex=str(_i(d, "sex")),
    )


def parse_vlw_friends(payload: Any) -> list[User]:
    friends = []
    for r in _list(_vlw_return(payload), "ReturnJson"):
        avatar = _s(r, "avatar")
        friends.append(User(
            wx_id=_s(r, "wxid"),
            wx_num=_s(r, "wx_num"),
            nick=_s(r, "nickname"),
            remark=_s(r, "note"),
            country=_s(r, "country"),
            province=_s(r, "province"),
            city=_s(r, "city"),
            avatar_min_url=avatar,
            avatar_max_url=avatar,
            sex=str(_i(r, "sex")),
        ))
    return friends


def parse_vlw_groups(payload: Any) -> list[User]:
    groups = []
    for r in _list(_vlw_return(payload), "ReturnJson"):
        avatar = _s(r, "avatar")
        groups.append(User(
            wx_id=_s(r, "wxid"),
            nick=_s(r, "nickname"),
            member_num=_i(r, "total_member"),
            avatar_min_url=avatar,
            avatar_max_url=avatar,
        ))
    return groups


def parse_vlw_group_members(payload: Any) -> list[User]:
    ret = _obj(_vlw_return(payload), "ReturnJson")
    members = []
    for r in _list(ret.get("member_list"), "member_list"):
        avatar = _s(r, "avatar")
        members.append(User(
            wx_id=_s(r, "wxid"),
            wx_num=_s(r, "wx_num"),
            nick=_s(r, "nickname"),
            remark=_s(r, "remark"),
            country=_s(r, "country"),
            province=_s(r, "province"),
            city=_s(r, "city"),
            avatar_min_url=avatar,
            avatar_max_url=avatar,
            sex=str(_i(r, "sex")),
        ))
    return members


def parse_vlw_mps(payload: Any) -> list[User]:
    mps = []
    for r in _list(_vlw_return(payload), "ReturnJson"):
        avatar = _s(r, "avatar")
        mps.append(User(
            wx_id=_s(r, "wxid"),
            nick=_s(r, "nickname"),
            avatar_min_url=avatar,
            avatar_max_url=avatar,
        ))
    return mps