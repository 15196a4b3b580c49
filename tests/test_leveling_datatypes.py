from levelcord.datatypes.leveling_datatypes import (
    CachedXpEntry,
    LevelReward,
    LevelSettings,
    UserXpRecord,
)


def test_level_settings_from_record_and_back():
    settings = LevelSettings.from_record(
        {"id": "3", "guild_id": 10, "enabled": 0, "xp_per_message": 25, "xp_cooldown": 30, "notification_channel_id": None}
    )

    assert settings.enabled is False
    assert settings.notification_channel_id is None
    assert settings.record_id == "3"
    assert settings.to_fields() == {
        "guild_id": 10,
        "enabled": 0,
        "xp_per_message": 25,
        "xp_cooldown": 30,
        "notification_channel_id": None,
    }


def test_level_reward_and_user_record_parse_ids():
    reward = LevelReward.from_record({"id": "1", "guild_id": "10", "level": "5", "role_id": "55"})
    record = UserXpRecord.from_record({"id": "2", "guild_id": 10, "user_id": 7, "xp": None})

    assert (reward.guild_id, reward.level, reward.role_id) == (10, 5, 55)
    assert (record.xp, record.level, record.last_message_time) == (0, 0, 0.0)


def test_cached_entry_dirty_tracking():
    entry = CachedXpEntry(guild_id=1, user_id=2)
    assert entry.key == (1, 2)
    assert not entry.is_dirty

    entry.mark_dirty()
    entry.mark_dirty()
    assert entry.is_dirty
    assert entry.revision == 2

    entry.persisted_revision = entry.revision
    assert not entry.is_dirty
    assert entry.snapshot() == {"xp": 0, "level": 0, "last_message_time": 0.0}
