"""
Shared fixtures for the messaging toolkit tests.

This module provides:
- A deterministic millisecond clock (every reading advances by one)
- Seeded users alice, bob and carol plus an 'InMemoryUserLookup'
- In-memory stores and a 'MessagingController' wired over them
- A direct conversation between alice and bob
"""

import pytest
import pytest_asyncio

from messaging_toolkit.config import MessagingSettings
from messaging_toolkit.conversation_database.controller import MessagingController
from messaging_toolkit.conversation_database.data_models.conversation import Conversation
from messaging_toolkit.conversation_database.data_models.user import MinimalUser
from messaging_toolkit.conversation_database.in_memory import InMemoryUserLookup
from messaging_toolkit.utils import time as time_utils


class FakeClock:
    def __init__(self, start_ns: int = 1_700_000_000_000 * 1_000_000) -> None:
        self.now_ns = start_ns

    def time_ns(self) -> int:
        self.now_ns += 1_000_000
        return self.now_ns


@pytest.fixture(autouse=True)
def fake_clock(monkeypatch):
    """Give every timestamp a distinct millisecond so ordering is deterministic."""
    clock = FakeClock()
    monkeypatch.setattr(time_utils, "time", clock)
    return clock


# =============================================================================
# Users
# =============================================================================


@pytest.fixture
def alice():
    return MinimalUser(id="alice", username="Alice", profile_picture_url="/img/alice.png")


@pytest.fixture
def bob():
    return MinimalUser(id="bob", username="Bob", profile_picture_url="/img/bob.png")


@pytest.fixture
def carol():
    return MinimalUser(id="carol", username="Carol")


@pytest.fixture
def user_lookup(alice, bob, carol):
    return InMemoryUserLookup([alice, bob, carol])


# =============================================================================
# Stores and services
# =============================================================================


@pytest.fixture
def settings():
    return MessagingSettings()


@pytest.fixture
def controller(user_lookup, settings):
    return MessagingController.in_memory(user_lookup, settings)


@pytest.fixture
def conversation_db(controller):
    return controller.conversation_db


@pytest.fixture
def message_db(controller):
    return controller.message_db


@pytest.fixture
def reaction_db(controller):
    return controller.reaction_db


@pytest_asyncio.fixture
async def direct_conversation(conversation_db) -> Conversation:
    """A direct conversation between alice and bob."""
    return await conversation_db.get_or_create_direct_conversation("alice", "bob")
