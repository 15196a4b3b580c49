"""
Levelcord - Discord Leveling Bot

Levelcord rewards chat activity with XP, announces level-ups and grants
role rewards when members cross configured level thresholds.

Core Components:

- **Leveling Service**: Awards randomized XP per message with a per-guild
  cooldown, keeps hot XP state in an in-memory ledger and persists it
  through a write-behind flusher
- **Record Store**: Collection-style CRUD over SQLite (aiosqlite) for guild
  settings, member XP and level rewards
- **Slash Commands**: Level cards, leaderboards and a ``/leveladmin`` group
  for configuration, rewards and bulk maintenance
"""
