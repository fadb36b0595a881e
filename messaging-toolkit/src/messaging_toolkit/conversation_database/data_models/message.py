"""
Message data model and storage interface.

Messages are ordered by 'create_timestamp' within a conversation and are never
physically removed: deleting flips 'is_deleted', which hides the message from
every read, from unread counting and from last-message recomputation.

Creating, editing and deleting a message also invalidate the denormalised
fields of the owning conversation. 'MessageDatabase' therefore holds a
reference to the 'ConversationDatabase' and repairs those fields itself, by
re-deriving them from the message collection rather than by blind increments,
so a retried or interleaved call converges on the same state.

Concrete implementations: 'InMemoryMessageDatabase', 'MongoDBMessageDatabase'.
"""

from abc import ABC, abstractmethod
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field

from messaging_toolkit.conversation_database.data_models.conversation import Conversation, ConversationDatabase
from messaging_toolkit.utils.database import generate_uid
from messaging_toolkit.utils.time import get_current_timestamp

MEDIA_MESSAGE_TYPES = frozenset({"image", "video", "audio", "file"})


class MediaAttachment(BaseModel):
    """Descriptor of an uploaded blob; the blob itself lives in external storage."""

    media_type: str
    url: str
    thumbnail_url: str | None = None
    file_name: str | None = None
    file_size: int = 0
    width: int = 0
    height: int = 0
    duration: int = 0


class Message(BaseModel):
    """
    A single message within a conversation.

    'read_by' maps user id to the timestamp of the first read; the sender is
    recorded as a reader at creation time. Edits never change 'sender_id' or
    'create_timestamp'.
    """

    id: str = Field(default_factory=generate_uid)
    conversation_id: str
    sender_id: str
    content: str = ""
    message_type: str = "text"
    media: list[MediaAttachment] = Field(default_factory=list)
    reply_to_message_id: str | None = None

    read_by: dict[str, int] = Field(default_factory=dict)
    liked_by: list[str] = Field(default_factory=list)
    is_saved: bool = False
    is_edited: bool = False
    edit_timestamp: int | None = None
    is_deleted: bool = False
    create_timestamp: int = Field(default_factory=get_current_timestamp)


class MessageDatabase(ABC):
    """Abstract repository for 'Message' records."""

    def __init__(self, conversation_db: ConversationDatabase) -> None:
        self.conversation_db = conversation_db

    @abstractmethod
    async def insert_message(self, message: Message) -> tuple[Message, bool]:
        """Persist 'message' unless its id is already stored.

        Returns the stored record and whether it was inserted by this call, so a
        retried send with the same id never creates a second message.
        """
        pass

    @abstractmethod
    async def get_message_by_id(self, message_id: str) -> Message | None:
        """Return the message unless it is missing or deleted."""
        pass

    @abstractmethod
    async def get_messages_by_conversation_id(
        self, conversation_id: str, skip: int = 0, limit: int = 50
    ) -> list[Message]:
        """Non-deleted messages, oldest first."""
        pass

    @abstractmethod
    async def get_media_messages(self, conversation_id: str, skip: int = 0, limit: int = 20) -> list[Message]:
        """Non-deleted messages whose type is in 'MEDIA_MESSAGE_TYPES', newest first."""
        pass

    @abstractmethod
    async def find_messages_by_content(
        self, conversation_id: str, query: str, skip: int = 0, limit: int = 20
    ) -> list[Message]:
        """Non-deleted messages whose content contains 'query' case-insensitively, newest first."""
        pass

    @abstractmethod
    async def get_latest_message_before(self, conversation_id: str, create_timestamp: int) -> Message | None:
        """The newest non-deleted message created strictly before 'create_timestamp'."""
        pass

    @abstractmethod
    async def count_unread_messages(self, user_id: str, conversation_ids: list[str]) -> int:
        """Count non-deleted messages in 'conversation_ids' not sent by and not read by 'user_id'."""
        pass

    @abstractmethod
    async def update_fields(self, message_id: str, fields: dict[str, Any]) -> None:
        """Atomically set top-level 'fields' on one message."""
        pass

    @abstractmethod
    async def set_map_entry_if_absent(self, message_id: str, field: str, key: str, value: Any) -> bool:
        """Atomically set 'field[key] = value' only when 'key' is absent. Returns whether it was set."""
        pass

    @abstractmethod
    async def add_to_list(self, message_id: str, field: str, value: str) -> None:
        """Append 'value' to a list field unless already present."""
        pass

    @abstractmethod
    async def remove_from_list(self, message_id: str, field: str, value: str) -> None:
        pass

    async def create_message(self, message: Message) -> Message:
        stored, created = await self.insert_message(message)
        if stored.is_deleted:
            return stored

        conversation = await self.conversation_db.get_conversation_by_id(stored.conversation_id)
        if conversation is None:
            logger.warning(f"create_message: conversation {stored.conversation_id} not found for {stored.id}")
            return stored

        # A retried insert only re-points the conversation if nothing newer landed since.
        if created or conversation.last_activity_timestamp <= stored.create_timestamp:
            await self.conversation_db.point_to_message(conversation.id, stored)
        await self.refresh_unread_counts(conversation, exclude_user_id=stored.sender_id)
        return stored

    async def refresh_unread_counts(self, conversation: Conversation, exclude_user_id: str | None = None) -> None:
        """Re-derive every participant's unread counter from the message collection."""
        for participant_id in conversation.participant_ids:
            if participant_id == exclude_user_id:
                continue
            count = await self.count_unread(participant_id, conversation.id)
            await self.conversation_db.set_unread_count(conversation.id, participant_id, count)

    async def mark_as_read(self, message_id: str, user_id: str) -> None:
        message = await self.get_message_by_id(message_id)
        if message is None:
            logger.debug(f"mark_as_read: message {message_id} not found, skipping")
            return
        if user_id in message.read_by:
            return
        await self.set_map_entry_if_absent(message_id, "read_by", user_id, get_current_timestamp())

    async def edit_message(self, message_id: str, new_content: str) -> None:
        message = await self.get_message_by_id(message_id)
        if message is None:
            logger.debug(f"edit_message: message {message_id} not found, skipping")
            return

        await self.update_fields(
            message_id,
            {"content": new_content, "is_edited": True, "edit_timestamp": get_current_timestamp()},
        )
        await self.conversation_db.update_preview(message.conversation_id, message_id, new_content)

    async def delete_message(self, message_id: str, requester_id: str) -> None:
        message = await self.get_message_by_id(message_id)
        if message is None:
            logger.debug(f"delete_message: message {message_id} not found, skipping")
            return
        if message.sender_id != requester_id:
            logger.debug(f"delete_message: {requester_id} is not the sender of {message_id}, skipping")
            return

        await self.update_fields(message_id, {"is_deleted": True})

        conversation = await self.conversation_db.get_conversation_by_id(message.conversation_id)
        if conversation is None or conversation.last_message_id != message_id:
            return

        previous = await self.get_latest_message_before(message.conversation_id, message.create_timestamp)
        if previous is None:
            # Nothing older survives; the pointer keeps referencing the deleted message.
            logger.debug(f"delete_message: no earlier message left in {message.conversation_id}")
            return
        await self.conversation_db.point_to_message(
            message.conversation_id,
            previous,
            only_if_last_message_id=message_id,
            touch_activity=False,
        )

    async def toggle_like(self, message_id: str, user_id: str) -> None:
        message = await self.get_message_by_id(message_id)
        if message is None:
            return
        if user_id in message.liked_by:
            await self.remove_from_list(message_id, "liked_by", user_id)
        else:
            await self.add_to_list(message_id, "liked_by", user_id)

    async def toggle_save(self, message_id: str, user_id: str) -> None:
        message = await self.get_message_by_id(message_id)
        if message is None:
            return
        conversation = await self.conversation_db.get_conversation_by_id(message.conversation_id)
        if conversation is None or not conversation.has_participant(user_id):
            return
        await self.update_fields(message_id, {"is_saved": not message.is_saved})

    async def search_messages(self, conversation_id: str, query: str, skip: int = 0, limit: int = 20) -> list[Message]:
        if not query or not query.strip():
            return []
        return await self.find_messages_by_content(conversation_id, query, skip, limit)

    async def count_unread(self, user_id: str, conversation_id: str | None = None) -> int:
        if conversation_id:
            conversation_ids = [conversation_id]
        else:
            conversation_ids = await self.conversation_db.get_conversation_ids_by_user_id(user_id)
        if not conversation_ids:
            return 0
        return await self.count_unread_messages(user_id, conversation_ids)
