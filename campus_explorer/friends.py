"""Local friend-code registry.

Friend codes are random 6-digit strings. There is no server: connecting to a
code simply records it locally, which is all the "friends" achievements need.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Final

from campus_explorer.errors import InvalidInputError
from campus_explorer.store import JsonStateStore

logger = logging.getLogger(__name__)

FRIENDS_KEY: Final[str] = "friends"
CODE_LENGTH: Final[int] = 6


def generate_user_code(rng: random.Random) -> str:
    return f"{rng.randint(100_000, 999_999):06d}"


def default_username(code: str) -> str:
    return f"Explorer{code[-4:]}"


@dataclass(slots=True)
class FriendProfile:
    code: str
    username: str
    friend_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "username": self.username, "friend_ids": list(self.friend_ids)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FriendProfile:
        code = str(data["code"])
        if not is_valid_code(code):
            raise ValueError(f"invalid user code {code!r}")
        return cls(
            code=code,
            username=str(data.get("username") or default_username(code)),
            friend_ids=[str(f) for f in data.get("friend_ids", [])],
        )


def is_valid_code(code: str) -> bool:
    return len(code) == CODE_LENGTH and code.isdigit()


class FriendRegistry:
    """The local user's code and the codes they connected with."""

    def __init__(self, store: JsonStateStore, rng: random.Random | None = None, autosave: bool = True) -> None:
        self._store = store
        self._rng = rng or random.Random()
        self._autosave = autosave
        self.profile = self._load_or_create()

    @property
    def user_code(self) -> str:
        return self.profile.code

    @property
    def friend_ids(self) -> list[str]:
        return list(self.profile.friend_ids)

    @property
    def friend_count(self) -> int:
        return len(self.profile.friend_ids)

    def connect(self, friend_code: str) -> str:
        """Connect with another explorer by code.

        Raises:
            InvalidInputError: Malformed code, own code, or already connected.
        """

        code = friend_code.strip()
        if not is_valid_code(code):
            raise InvalidInputError(f"好友码必须是 {CODE_LENGTH} 位数字：{friend_code!r}")
        if code == self.profile.code:
            raise InvalidInputError("不能添加自己为好友")
        if code in self.profile.friend_ids:
            raise InvalidInputError(f"已经是好友：{code}")

        self.profile.friend_ids.append(code)
        logger.info("已添加好友：%s", code)
        if self._autosave:
            self.save()
        return code

    def remove(self, friend_code: str) -> bool:
        code = friend_code.strip()
        if code not in self.profile.friend_ids:
            return False
        self.profile.friend_ids = [f for f in self.profile.friend_ids if f != code]
        if self._autosave:
            self.save()
        return True

    def save(self) -> None:
        self._store.set(FRIENDS_KEY, self.profile.to_dict())

    def _load_or_create(self) -> FriendProfile:
        raw = self._store.get(FRIENDS_KEY)
        if raw is not None:
            try:
                return FriendProfile.from_dict(raw)
            except (KeyError, ValueError, TypeError, AttributeError, OverflowError) as exc:
                logger.warning("好友数据无法解析，重新生成：%s", exc)

        code = generate_user_code(self._rng)
        profile = FriendProfile(code=code, username=default_username(code))
        self._store.set(FRIENDS_KEY, profile.to_dict())
        return profile
