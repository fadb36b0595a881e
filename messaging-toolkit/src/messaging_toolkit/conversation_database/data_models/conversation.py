"""
Conversation data model and storage interface.

A conversation binds a set of participants and carries a denormalised cache of
its most recent message ('last_message_*') plus per-participant maps for unread
counters and mute flags. Conversations are never removed: archiving and
deleting are status transitions, and deleted conversations are invisible to
every read.

The 'ConversationDatabase' ABC is the pluggable storage backend. Concrete
implementations ('InMemoryConversationDatabase', 'MongoDBConversationDatabase')
provide the abstract primitives; the per-user map updates and last-message
pointer helpers are shared here so every backend behaves the same.
"""

from abc import ABC, abstractmethod
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from loguru import logger
from pydantic import BaseModel, Field

from messaging_toolkit.utils.database import generate_uid
from messaging_toolkit.utils.time import get_current_timestamp

if TYPE_CHECKING:
    from messaging_toolkit.conversation_database.data_models.message import Message

PREVIEW_MAX_LENGTH = 50
PREVIEW_ELLIPSIS = "..."


class ConversationStatus(StrEnum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    DELETED = "deleted"


class Conversation(BaseModel):
    """
    A direct (two participants) or group conversation.

    'participant_ids' keeps insertion order for group display. 'unread_count'
    and 'muted_by' are keyed by user id; a missing key means 0 / not muted.
    """

    id: str = Field(default_factory=generate_uid)
    participant_ids: list[str] = Field(default_factory=list)
    is_group: bool = False
    title: str | None = None
    image_url: str | None = None

    last_message_id: str | None = None
    last_message_preview: str | None = None
    last_message_sender_id: str | None = None
    last_activity_timestamp: int = Field(default_factory=get_current_timestamp)
    create_timestamp: int = Field(default_factory=get_current_timestamp)

    unread_count: dict[str, int] = Field(default_factory=dict)
    muted_by: dict[str, bool] = Field(default_factory=dict)
    status: ConversationStatus = ConversationStatus.ACTIVE
    is_vanish: bool = False

    def has_participant(self, user_id: str) -> bool:
        return user_id in self.participant_ids


def truncate_preview(content: str | None, max_length: int = PREVIEW_MAX_LENGTH) -> str:
    """Shorten 'content' to at most 'max_length' characters, ending in '...' when cut."""
    if not content:
        return ""
    if len(content) <= max_length:
        return content
    return content[: max_length - len(PREVIEW_ELLIPSIS)] + PREVIEW_ELLIPSIS


class ConversationDatabase(ABC):
    """Abstract repository for 'Conversation' records."""

    def __init__(self, preview_max_length: int = PREVIEW_MAX_LENGTH) -> None:
        self.preview_max_length = preview_max_length

    @abstractmethod
    async def create_conversation(self, conversation: Conversation) -> Conversation:
        """Persist 'conversation' with status 'active'."""
        pass

    @abstractmethod
    async def get_conversation_by_id(self, conversation_id: str) -> Conversation | None:
        """Return the conversation unless it is missing or deleted."""
        pass

    @abstractmethod
    async def get_conversations_by_user_id(self, user_id: str, skip: int = 0, limit: int = 20) -> list[Conversation]:
        """Non-deleted conversations of 'user_id', most recent activity first."""
        pass

    @abstractmethod
    async def count_conversations_by_user_id(self, user_id: str) -> int:
        pass

    @abstractmethod
    async def get_conversation_ids_by_user_id(self, user_id: str) -> list[str]:
        """Ids of every conversation listing 'user_id', whatever its status."""
        pass

    @abstractmethod
    async def find_direct_conversation(self, user_a: str, user_b: str) -> Conversation | None:
        """Return the non-group conversation whose participants are exactly 'user_a' and 'user_b'."""
        pass

    @abstractmethod
    async def update_fields(
        self,
        conversation_id: str,
        fields: dict[str, Any],
        only_if_last_message_id: str | None = None,
    ) -> bool:
        """Atomically set top-level 'fields' on one conversation.

        When 'only_if_last_message_id' is given the update only applies while
        the conversation still points at that message. Returns whether a
        conversation was updated.
        """
        pass

    @abstractmethod
    async def set_map_entry(self, conversation_id: str, field: str, key: str, value: Any) -> None:
        """Atomically set 'field[key] = value' on a map-valued field without rewriting the map."""
        pass

    async def get_or_create_direct_conversation(self, user_a: str, user_b: str) -> Conversation:
        # Two concurrent callers can both miss the lookup and insert a duplicate.
        conversation = await self.find_direct_conversation(user_a, user_b)
        if conversation is not None:
            return conversation

        now = get_current_timestamp()
        logger.debug(f"Creating direct conversation between {user_a} and {user_b}")
        return await self.create_conversation(
            Conversation(
                participant_ids=[user_a, user_b],
                is_group=False,
                create_timestamp=now,
                last_activity_timestamp=now,
            )
        )

    async def set_muted(self, conversation_id: str, user_id: str, mute: bool) -> None:
        await self.set_map_entry(conversation_id, "muted_by", user_id, mute)

    async def set_unread_count(self, conversation_id: str, user_id: str, count: int) -> None:
        await self.set_map_entry(conversation_id, "unread_count", user_id, count)

    async def archive_conversation(self, conversation_id: str, user_id: str) -> None:
        # Applies to every participant, not only 'user_id'.
        logger.info(f"User {user_id} archived conversation {conversation_id}")
        await self.update_fields(conversation_id, {"status": ConversationStatus.ARCHIVED.value})

    async def delete_conversation(self, conversation_id: str, user_id: str) -> None:
        # Soft delete, applies to every participant.
        logger.info(f"User {user_id} deleted conversation {conversation_id}")
        await self.update_fields(conversation_id, {"status": ConversationStatus.DELETED.value})

    async def point_to_message(
        self,
        conversation_id: str,
        message: "Message",
        only_if_last_message_id: str | None = None,
        touch_activity: bool = True,
    ) -> bool:
        """Make 'message' the conversation's last message."""
        fields: dict[str, Any] = {
            "last_message_id": message.id,
            "last_message_preview": truncate_preview(message.content, self.preview_max_length),
            "last_message_sender_id": message.sender_id,
        }
        if touch_activity:
            fields["last_activity_timestamp"] = message.create_timestamp
        return await self.update_fields(conversation_id, fields, only_if_last_message_id=only_if_last_message_id)

    async def update_preview(self, conversation_id: str, message_id: str, content: str) -> bool:
        """Refresh the preview text if 'message_id' is still the last message."""
        return await self.update_fields(
            conversation_id,
            {"last_message_preview": truncate_preview(content, self.preview_max_length)},
            only_if_last_message_id=message_id,
        )
