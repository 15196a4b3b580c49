"""Tests for the SQLite-backed record store."""

import pytest

from levelcord.errors import InvalidQueryError, RecordNotFoundError, RecordStoreError


@pytest.mark.asyncio
async def test_create_assigns_string_id_and_timestamps(store):
    record = await store.create("level_rewards", {"guild_id": 1, "level": 5, "role_id": 55})

    assert isinstance(record["id"], str)
    assert record["guild_id"] == 1
    assert record["level"] == 5
    assert record["created"] > 0
    assert record["updated"] == record["created"]


@pytest.mark.asyncio
async def test_get_returns_record_and_raises_when_missing(store):
    created = await store.create("user_levels", {"guild_id": 1, "user_id": 2, "xp": 10, "level": 0})

    fetched = await store.get("user_levels", created["id"])
    assert fetched["xp"] == 10

    with pytest.raises(RecordNotFoundError):
        await store.get("user_levels", "9999")


@pytest.mark.asyncio
async def test_find_with_operators_sort_and_paging(store):
    for level, role in [(10, 100), (1, 101), (5, 105)]:
        await store.create("level_rewards", {"guild_id": 1, "level": level, "role_id": role})
    await store.create("level_rewards", {"guild_id": 2, "level": 1, "role_id": 200})

    up_to_five = await store.find("level_rewards", {"guild_id": 1, "level <=": 5}, sort="+level")
    assert [r["role_id"] for r in up_to_five] == [101, 105]

    descending = await store.find("level_rewards", {"guild_id": 1}, sort="-level")
    assert [r["level"] for r in descending] == [10, 5, 1]

    page_two = await store.find("level_rewards", {"guild_id": 1}, sort="+level", limit=2, offset=2)
    assert [r["level"] for r in page_two] == [10]

    offset_only = await store.find("level_rewards", {"guild_id": 1}, sort="+level", offset=1)
    assert [r["level"] for r in offset_only] == [5, 10]


@pytest.mark.asyncio
async def test_first_and_count(store):
    assert await store.first("user_levels", {"guild_id": 1}) is None
    assert await store.count("user_levels", {"guild_id": 1}) == 0

    await store.create("user_levels", {"guild_id": 1, "user_id": 1, "xp": 5, "level": 0})
    await store.create("user_levels", {"guild_id": 1, "user_id": 2, "xp": 50, "level": 0})

    top = await store.first("user_levels", {"guild_id": 1}, sort="-xp")
    assert top["user_id"] == 2
    assert await store.count("user_levels", {"guild_id": 1}) == 2
    assert await store.count("user_levels") == 2


@pytest.mark.asyncio
async def test_none_filter_matches_null(store):
    await store.create("level_settings", {"guild_id": 1, "enabled": 1, "notification_channel_id": None})
    await store.create("level_settings", {"guild_id": 2, "enabled": 1, "notification_channel_id": 77})

    without_channel = await store.find("level_settings", {"notification_channel_id": None})
    with_channel = await store.find("level_settings", {"notification_channel_id !=": None})

    assert [r["guild_id"] for r in without_channel] == [1]
    assert [r["guild_id"] for r in with_channel] == [2]


@pytest.mark.asyncio
async def test_update_patches_fields(store):
    created = await store.create("user_levels", {"guild_id": 1, "user_id": 2, "xp": 10, "level": 0})

    updated = await store.update("user_levels", created["id"], {"xp": 150, "level": 1})

    assert updated["id"] == created["id"]
    assert updated["xp"] == 150
    assert updated["level"] == 1
    assert updated["user_id"] == 2


@pytest.mark.asyncio
async def test_update_and_delete_missing_record_raise(store):
    with pytest.raises(RecordNotFoundError):
        await store.update("user_levels", "42", {"xp": 1})
    with pytest.raises(RecordNotFoundError):
        await store.delete("user_levels", "42")


@pytest.mark.asyncio
async def test_delete_and_delete_where(store):
    first = await store.create("level_rewards", {"guild_id": 1, "level": 1, "role_id": 10})
    await store.create("level_rewards", {"guild_id": 1, "level": 2, "role_id": 20})
    await store.create("level_rewards", {"guild_id": 2, "level": 1, "role_id": 30})

    await store.delete("level_rewards", first["id"])
    assert await store.count("level_rewards", {"guild_id": 1}) == 1

    removed = await store.delete_where("level_rewards", {"guild_id": 1})
    assert removed == 1
    assert await store.count("level_rewards") == 1

    with pytest.raises(InvalidQueryError):
        await store.delete_where("level_rewards", {})


@pytest.mark.asyncio
async def test_invalid_queries_are_rejected(store):
    with pytest.raises(InvalidQueryError):
        await store.find("guild_settings")
    with pytest.raises(InvalidQueryError):
        await store.find("user_levels", {"username": "x"})
    with pytest.raises(InvalidQueryError):
        await store.find("user_levels", {"xp ~": 3})
    with pytest.raises(InvalidQueryError):
        await store.find("user_levels", sort="-karma")
    with pytest.raises(InvalidQueryError):
        await store.create("user_levels", {"guild_id": 1, "id": 3})


@pytest.mark.asyncio
async def test_user_levels_rejects_second_row_for_same_member(store):
    await store.create("user_levels", {"guild_id": 1, "user_id": 2, "xp": 10, "level": 0})

    with pytest.raises(RecordStoreError):
        await store.create("user_levels", {"guild_id": 1, "user_id": 2, "xp": 20, "level": 0})

    assert await store.count("user_levels", {"guild_id": 1, "user_id": 2}) == 1
