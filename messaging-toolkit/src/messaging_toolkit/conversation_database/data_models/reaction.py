"""
Reaction data model and storage interface.

A reaction is a free-form token (typically an emoji) that a user attaches to a
message. Each user holds at most one reaction per message: adding a reaction
when one already exists updates its type in place instead of inserting a
second record.

Concrete implementations: 'InMemoryReactionDatabase', 'MongoDBReactionDatabase'.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from messaging_toolkit.utils.database import generate_uid
from messaging_toolkit.utils.time import get_current_timestamp


class Reaction(BaseModel):
    """A user's reaction to a message."""

    id: str = Field(default_factory=generate_uid)
    message_id: str
    user_id: str
    reaction_type: str
    create_timestamp: int = Field(default_factory=get_current_timestamp)


class ReactionDatabase(ABC):
    """Abstract repository for 'Reaction' records."""

    @abstractmethod
    async def insert_reaction(self, reaction: Reaction) -> Reaction:
        pass

    @abstractmethod
    async def get_reactions_by_message_id(self, message_id: str) -> list[Reaction]:
        pass

    @abstractmethod
    async def get_user_reaction(self, message_id: str, user_id: str) -> Reaction | None:
        pass

    @abstractmethod
    async def update_reaction(self, message_id: str, user_id: str, reaction_type: str) -> None:
        pass

    @abstractmethod
    async def remove_reaction(self, message_id: str, user_id: str) -> bool:
        """Delete the user's reaction. Returns whether one existed."""
        pass

    async def add_reaction(self, reaction: Reaction) -> Reaction:
        existing = await self.get_user_reaction(reaction.message_id, reaction.user_id)
        if existing is None:
            return await self.insert_reaction(reaction)

        await self.update_reaction(reaction.message_id, reaction.user_id, reaction.reaction_type)
        return existing.model_copy(update={"reaction_type": reaction.reaction_type})
