"""
User lookup interface.

User profiles are owned by another subsystem. The messaging services only need
a minimal projection (id, username, profile picture) to render senders,
readers and participants, and must keep working when a user cannot be
resolved: 'get_minimal_user' returns None instead of raising, and callers fall
back to generic display values.

Concrete implementation: 'InMemoryUserLookup'.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel


class MinimalUser(BaseModel):
    """The public projection of a user profile."""

    id: str
    username: str
    profile_picture_url: str | None = None


class UserLookup(ABC):
    """Abstract read-only access to user profiles."""

    @abstractmethod
    async def get_minimal_user(self, user_id: str) -> MinimalUser | None:
        pass
