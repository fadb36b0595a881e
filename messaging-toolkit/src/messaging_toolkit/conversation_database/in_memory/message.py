from typing import Any

from messaging_toolkit.conversation_database.data_models.conversation import ConversationDatabase
from messaging_toolkit.conversation_database.data_models.message import MEDIA_MESSAGE_TYPES, Message, MessageDatabase


class InMemoryMessageDatabase(MessageDatabase):
    def __init__(self, conversation_db: ConversationDatabase) -> None:
        super().__init__(conversation_db)
        self.messages: dict[str, Message] = {}

    def _live(self, conversation_id: str) -> list[Message]:
        """Non-deleted messages of one conversation, oldest first (insertion order breaks ties)."""
        live = [m for m in self.messages.values() if m.conversation_id == conversation_id and not m.is_deleted]
        return sorted(live, key=lambda m: m.create_timestamp)

    @staticmethod
    def _page(messages: list[Message], skip: int, limit: int) -> list[Message]:
        return [m.model_copy(deep=True) for m in messages[skip : skip + limit]]

    async def insert_message(self, message: Message) -> tuple[Message, bool]:
        existing = self.messages.get(message.id)
        if existing is not None:
            return existing.model_copy(deep=True), False
        self.messages[message.id] = message.model_copy(deep=True)
        return message.model_copy(deep=True), True

    async def get_message_by_id(self, message_id: str) -> Message | None:
        message = self.messages.get(message_id)
        if message is None or message.is_deleted:
            return None
        return message.model_copy(deep=True)

    async def get_messages_by_conversation_id(
        self, conversation_id: str, skip: int = 0, limit: int = 50
    ) -> list[Message]:
        return self._page(self._live(conversation_id), skip, limit)

    async def get_media_messages(self, conversation_id: str, skip: int = 0, limit: int = 20) -> list[Message]:
        media = [m for m in reversed(self._live(conversation_id)) if m.message_type in MEDIA_MESSAGE_TYPES]
        return self._page(media, skip, limit)

    async def find_messages_by_content(
        self, conversation_id: str, query: str, skip: int = 0, limit: int = 20
    ) -> list[Message]:
        needle = query.casefold()
        found = [m for m in reversed(self._live(conversation_id)) if needle in m.content.casefold()]
        return self._page(found, skip, limit)

    async def get_latest_message_before(self, conversation_id: str, create_timestamp: int) -> Message | None:
        older = [m for m in self._live(conversation_id) if m.create_timestamp < create_timestamp]
        return older[-1].model_copy(deep=True) if older else None

    async def count_unread_messages(self, user_id: str, conversation_ids: list[str]) -> int:
        scope = set(conversation_ids)
        return sum(
            1
            for m in self.messages.values()
            if m.conversation_id in scope and not m.is_deleted and m.sender_id != user_id and user_id not in m.read_by
        )

    async def update_fields(self, message_id: str, fields: dict[str, Any]) -> None:
        message = self.messages.get(message_id)
        if message is None:
            return
        self.messages[message_id] = Message.model_validate({**message.model_dump(), **fields})

    async def set_map_entry_if_absent(self, message_id: str, field: str, key: str, value: Any) -> bool:
        message = self.messages.get(message_id)
        if message is None:
            return False
        mapping = getattr(message, field)
        if key in mapping:
            return False
        mapping[key] = value
        return True

    async def add_to_list(self, message_id: str, field: str, value: str) -> None:
        message = self.messages.get(message_id)
        if message is not None and value not in getattr(message, field):
            getattr(message, field).append(value)

    async def remove_from_list(self, message_id: str, field: str, value: str) -> None:
        message = self.messages.get(message_id)
        if message is not None and value in getattr(message, field):
            getattr(message, field).remove(value)
