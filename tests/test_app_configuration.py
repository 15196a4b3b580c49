from pathlib import Path

import pytest

from levelcord.configuration.app_configuration import AppConfig, LevelingConfig


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "app_config.yml"


def test_app_config_reload_parses_yaml(config_path: Path, tmp_path: Path) -> None:
    config_path.write_text(
        "database:\n"
        f"  path: {tmp_path / 'db' / 'levels.db'}\n"
        "leveling:\n"
        "  settings_cache_ttl_seconds: 120\n"
        "  xp_cache_ttl_seconds: 600\n"
        "  flush_interval_seconds: 15\n"
        "  cache_sweep_interval_seconds: 30\n"
        "  leaderboard_page_size: 25\n",
        encoding="utf-8",
    )

    config = AppConfig(config_path)

    assert config.database_path == (tmp_path / "db" / "levels.db").resolve()
    assert config.get("leveling")["flush_interval_seconds"] == 15
    assert config.leveling == LevelingConfig(
        settings_cache_ttl=120,
        xp_cache_ttl=600,
        flush_interval=15,
        cache_sweep_interval=30,
        leaderboard_page_size=25,
    )


def test_app_config_missing_file_returns_defaults(tmp_path: Path) -> None:
    config = AppConfig(tmp_path / "does_not_exist.yml")

    assert config.data == {}
    assert config.database_path.name == "levelcord.db"
    assert config.leveling == LevelingConfig()
    assert config.settings_cache_ttl == 900
    assert config.xp_cache_ttl == 1800
    assert config.flush_interval == 60
    assert config.leaderboard_page_size == 10


def test_app_config_non_mapping_yaml_is_ignored(config_path: Path) -> None:
    config_path.write_text("- just\n- a list\n", encoding="utf-8")

    config = AppConfig(config_path)

    assert config.data == {}


def test_app_config_malformed_section_falls_back(config_path: Path) -> None:
    config_path.write_text("leveling: not-a-mapping\n", encoding="utf-8")

    config = AppConfig(config_path)

    assert config.flush_interval == 60
    assert config.cache_sweep_interval == 300


def test_app_config_reload_picks_up_changes(config_path: Path) -> None:
    config_path.write_text("leveling:\n  flush_interval_seconds: 5\n", encoding="utf-8")
    config = AppConfig(config_path)
    assert config.flush_interval == 5

    config_path.write_text("leveling:\n  flush_interval_seconds: 9\n", encoding="utf-8")
    config.reload()

    assert config.flush_interval == 9
