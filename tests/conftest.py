import os
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
import pytest_asyncio

# Ensure pytest-asyncio plugin is active for async tests
pytest_plugins = ("pytest_asyncio",)

# Ensure project root on path before importing package modules
project_root = Path(__file__).resolve().parents[1]
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

# The module-level engine must point at SQLite during tests
_test_db_path = project_root / "test.db"
os.environ["APP_DATABASE_URL"] = f"sqlite+aiosqlite:///{_test_db_path.as_posix()}"
os.environ["APP_DEBUG"] = "false"


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Session factory bound to a fresh SQLite database for each test."""
    from message_reactions.database import build_engine, build_session_factory, create_tables, drop_tables

    engine = build_engine(f"sqlite:///{(tmp_path / 'reactions.db').as_posix()}")
    await create_tables(engine)
    yield build_session_factory(engine)
    await drop_tables(engine)
    await engine.dispose()


@pytest.fixture
def create_users(session_factory):
    """Insert `count` users and return their ids."""
    from message_reactions.models import User

    async def _create(count: int):
        async with session_factory() as db:
            users = [User(username=f"user{i}") for i in range(count)]
            db.add_all(users)
            await db.commit()
            return [user.id for user in users]

    return _create


@pytest.fixture
def create_message(session_factory):
    from message_reactions.models import Message

    async def _create(sender_id: int, text: str = "hello"):
        async with session_factory() as db:
            message = Message(sender_id=sender_id, text=text)
            db.add(message)
            await db.commit()
            return message.id

    return _create


@pytest_asyncio.fixture
async def seeded(create_users, create_message):
    """Three users (alice, bob, carol) and one message sent by alice."""
    alice, bob, carol = await create_users(3)
    message_id = await create_message(alice)
    return SimpleNamespace(message_id=message_id, alice=alice, bob=bob, carol=carol)


@pytest.fixture
def store(session_factory):
    from message_reactions.config import SameTypePolicy
    from message_reactions.services.reaction_store import ReactionStore

    return ReactionStore(session_factory, same_type_policy=SameTypePolicy.toggle, lock_timeout=5)
