from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import fcntl
from typing import Any, Dict
import yaml

from levelcord.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()


@dataclass(frozen=True, slots=True)
class LevelingConfig:
    """Timing knobs for the leveling caches and background tasks, in seconds."""

    settings_cache_ttl: float = 15 * 60
    xp_cache_ttl: float = 30 * 60
    flush_interval: float = 60.0
    cache_sweep_interval: float = 5 * 60
    leaderboard_page_size: int = 10


class AppConfig:
    """File-lock based accessor around the YAML-based application configuration.

    The class caches the contents of ``./config/app_config.yml`` and exposes
    dictionary-like access helpers plus typed shortcuts for the leveling
    subsystem. Uses fcntl file locks for safe concurrent access across
    processes.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                data = yaml.safe_load(f)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                if not isinstance(data, dict):
                    return {}
                return data
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
        return {}

    def _section(self, key: str) -> Dict[str, Any]:
        value = self._data.get(key, {})
        return value if isinstance(value, dict) else {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns the raw mapping that was loaded (an empty dict on error).
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the current cached configuration mapping (do not mutate)."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def database_path(self) -> Path:
        """Return the SQLite file backing the record store."""
        path = self._section("database").get("path") or "./data/levelcord.db"
        return Path(str(path)).resolve()

    @property
    def settings_cache_ttl(self) -> float:
        return float(self._section("leveling").get("settings_cache_ttl_seconds", 15 * 60))

    @property
    def xp_cache_ttl(self) -> float:
        return float(self._section("leveling").get("xp_cache_ttl_seconds", 30 * 60))

    @property
    def flush_interval(self) -> float:
        """Return the write-behind flush period. Default is 60 seconds."""
        return float(self._section("leveling").get("flush_interval_seconds", 60.0))

    @property
    def cache_sweep_interval(self) -> float:
        return float(self._section("leveling").get("cache_sweep_interval_seconds", 5 * 60))

    @property
    def leaderboard_page_size(self) -> int:
        return int(self._section("leveling").get("leaderboard_page_size", 10))

    @property
    def leveling(self) -> LevelingConfig:
        """Bundle the leveling knobs into a :class:`LevelingConfig`."""
        return LevelingConfig(
            settings_cache_ttl=self.settings_cache_ttl,
            xp_cache_ttl=self.xp_cache_ttl,
            flush_interval=self.flush_interval,
            cache_sweep_interval=self.cache_sweep_interval,
            leaderboard_page_size=self.leaderboard_page_size,
        )


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
