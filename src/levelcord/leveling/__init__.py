"""
XP accrual, caching and persistence.

- **level_curve.py**: Pure functions mapping XP to levels and back
- **settings_cache.py**: TTL cache of per-guild leveling settings
- **xp_cache.py**: In-memory ledger of member XP, hydrated from the store
- **write_behind.py**: Batched persistence of ledger changes, plus forced flushes
- **role_rewards.py**: Grants reward roles up to a level
- **gateway.py**: Chat platform operations used by the service
- **leveling_service.py**: Ties the pieces together behind ``add_xp`` and the admin operations
"""
