"""
Dict-backed store implementations.

Suitable for tests and single-process deployments. Records are copied on the
way in and out so callers never alias stored state, and every primitive
completes without yielding to the event loop, which makes each one atomic with
respect to other coroutines.
"""

from messaging_toolkit.conversation_database.in_memory.conversation import InMemoryConversationDatabase
from messaging_toolkit.conversation_database.in_memory.message import InMemoryMessageDatabase
from messaging_toolkit.conversation_database.in_memory.reaction import InMemoryReactionDatabase
from messaging_toolkit.conversation_database.in_memory.user import InMemoryUserLookup

__all__ = [
    "InMemoryConversationDatabase",
    "InMemoryMessageDatabase",
    "InMemoryReactionDatabase",
    "InMemoryUserLookup",
]
