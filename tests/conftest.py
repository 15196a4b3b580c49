"""
Pytest configuration and fixtures for Levelcord tests.
"""

import sys
from pathlib import Path

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio

from levelcord.database.record_store import RecordStore


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FixedRandom:
    def __init__(self, value: float = 0.5):
        self.value = value

    def random(self) -> float:
        return self.value


class FakeGateway:
    """Records every chat platform call the leveling code makes."""

    def __init__(self):
        self.members: Dict[int, Any] = {}
        self.sent: List[tuple] = []
        self.granted: List[tuple] = []
        self.fail_roles: set = set()
        self.fail_send = False

    def add_member(self, user_id: int, roles=()):
        member = SimpleNamespace(id=user_id, roles=set(roles))
        self.members[user_id] = member
        return member

    async def send_message(self, channel_id: int, content: str) -> None:
        if self.fail_send:
            raise RuntimeError("channel unavailable")
        self.sent.append((channel_id, content))

    async def fetch_member(self, guild_id: int, user_id: int) -> Optional[Any]:
        return self.members.get(user_id)

    def member_has_role(self, member: Any, role_id: int) -> bool:
        return role_id in member.roles

    async def grant_role(self, member: Any, role_id: int, reason: Optional[str] = None) -> None:
        if role_id in self.fail_roles:
            raise RuntimeError(f"cannot grant {role_id}")
        member.roles.add(role_id)
        self.granted.append((member.id, role_id))

    def mention(self, member: Any) -> str:
        return f"<@{member.id}>"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest_asyncio.fixture
async def store(tmp_path: Path):
    """Record store backed by a throwaway SQLite file."""
    record_store = RecordStore()
    await record_store.initialize(tmp_path / "levelcord.db")
    yield record_store
    await record_store.close()
