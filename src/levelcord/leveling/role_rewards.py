"""Grants the reward roles a member has earned up to a given level."""

from __future__ import annotations

from typing import List

from levelcord.database.record_store import RecordStore
from levelcord.datatypes.leveling_datatypes import LevelReward
from levelcord.leveling.gateway import ChatGateway
from levelcord.util.logger import get_logger

logger = get_logger("role_rewards")

REWARDS_COLLECTION = "level_rewards"


class RoleRewardDispatcher:
    """Looks up ``level_rewards`` and grants missing roles one by one."""

    def __init__(self, store: RecordStore, gateway: ChatGateway) -> None:
        self._store = store
        self._gateway = gateway

    async def rewards_up_to(self, guild_id: int, level: int) -> List[LevelReward]:
        records = await self._store.find(
            REWARDS_COLLECTION,
            {"guild_id": guild_id, "level <=": level},
            sort="+level",
        )
        return [LevelReward.from_record(record) for record in records]

    async def grant_rewards_up_to(self, user_id: int, guild_id: int, level: int) -> List[int]:
        """
        Grant every reward role for thresholds ``<= level`` the member lacks.

        Each grant is independent: a failure is logged and the remaining
        rewards are still processed. Reading the rewards or the member may
        raise; callers decide whether that matters.

        Returns:
            Role ids that were granted by this call.
        """
        rewards = await self.rewards_up_to(guild_id, level)
        if not rewards:
            return []

        member = await self._gateway.fetch_member(guild_id, user_id)
        if member is None:
            logger.info("[ROLE REWARDS] User %s is no longer in guild %s, skipping rewards", user_id, guild_id)
            return []

        granted: List[int] = []
        for reward in rewards:
            if self._gateway.member_has_role(member, reward.role_id):
                continue
            try:
                await self._gateway.grant_role(member, reward.role_id, reason=f"Reached level {reward.level}")
            except Exception as exc:
                logger.warning(
                    "[ROLE REWARDS] Could not grant role %s (level %s) to user %s in guild %s: %s",
                    reward.role_id, reward.level, user_id, guild_id, exc,
                )
                continue
            granted.append(reward.role_id)

        if granted:
            logger.info("[ROLE REWARDS] Granted %d role(s) to user %s in guild %s", len(granted), user_id, guild_id)
        return granted
