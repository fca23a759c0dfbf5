from __future__ import annotations

import random

import pytest

from campus_explorer.errors import InvalidInputError
from campus_explorer.friends import FRIENDS_KEY, FriendRegistry, default_username, is_valid_code
from campus_explorer.store import JsonStateStore


def _other_code(registry: FriendRegistry, n: int = 0) -> str:
    candidates = [c for c in ("111111", "222222", "333333") if c != registry.user_code]
    return candidates[n]


def test_user_code_is_generated_once(store: JsonStateStore) -> None:
    registry = FriendRegistry(store, rng=random.Random(1))
    assert is_valid_code(registry.user_code)
    assert registry.profile.username == default_username(registry.user_code)

    again = FriendRegistry(store, rng=random.Random(2))
    assert again.user_code == registry.user_code


def test_connect_and_remove(store: JsonStateStore) -> None:
    registry = FriendRegistry(store, rng=random.Random(1))
    code = _other_code(registry)
    assert registry.connect(f" {code} ") == code
    assert registry.friend_count == 1

    assert registry.remove(code)
    assert not registry.remove(code)
    assert registry.friend_count == 0


@pytest.mark.parametrize("code", ["", "12345", "1234567", "12a456"])
def test_malformed_codes_are_rejected(store: JsonStateStore, code: str) -> None:
    registry = FriendRegistry(store, rng=random.Random(1))
    with pytest.raises(InvalidInputError):
        registry.connect(code)


def test_own_and_duplicate_codes_are_rejected(store: JsonStateStore) -> None:
    registry = FriendRegistry(store, rng=random.Random(1))
    with pytest.raises(InvalidInputError):
        registry.connect(registry.user_code)

    code = _other_code(registry)
    registry.connect(code)
    with pytest.raises(InvalidInputError):
        registry.connect(code)
    assert registry.friend_count == 1


def test_default_username_uses_last_four_digits() -> None:
    assert default_username("123456") == "Explorer3456"


def test_broken_profile_is_regenerated(store: JsonStateStore) -> None:
    store.set(FRIENDS_KEY, {"code": "abc"})
    registry = FriendRegistry(store, rng=random.Random(1))
    assert is_valid_code(registry.user_code)
    assert store.get(FRIENDS_KEY)["code"] == registry.user_code
