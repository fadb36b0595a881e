from typing import Any

from messaging_toolkit.conversation_database.data_models.conversation import (
    PREVIEW_MAX_LENGTH,
    Conversation,
    ConversationDatabase,
    ConversationStatus,
)


class InMemoryConversationDatabase(ConversationDatabase):
    def __init__(self, preview_max_length: int = PREVIEW_MAX_LENGTH) -> None:
        super().__init__(preview_max_length)
        self.conversations: dict[str, Conversation] = {}

    def _visible(self, conversation: Conversation) -> bool:
        return conversation.status != ConversationStatus.DELETED

    async def create_conversation(self, conversation: Conversation) -> Conversation:
        stored = conversation.model_copy(deep=True, update={"status": ConversationStatus.ACTIVE})
        self.conversations[stored.id] = stored
        return stored.model_copy(deep=True)

    async def get_conversation_by_id(self, conversation_id: str) -> Conversation | None:
        conversation = self.conversations.get(conversation_id)
        if conversation is None or not self._visible(conversation):
            return None
        return conversation.model_copy(deep=True)

    async def get_conversations_by_user_id(self, user_id: str, skip: int = 0, limit: int = 20) -> list[Conversation]:
        matches = [c for c in self.conversations.values() if self._visible(c) and c.has_participant(user_id)]
        matches.sort(key=lambda c: c.last_activity_timestamp, reverse=True)
        return [c.model_copy(deep=True) for c in matches[skip : skip + limit]]

    async def count_conversations_by_user_id(self, user_id: str) -> int:
        return sum(1 for c in self.conversations.values() if self._visible(c) and c.has_participant(user_id))

    async def get_conversation_ids_by_user_id(self, user_id: str) -> list[str]:
        return [c.id for c in self.conversations.values() if c.has_participant(user_id)]

    async def find_direct_conversation(self, user_a: str, user_b: str) -> Conversation | None:
        wanted = {user_a, user_b}
        for conversation in self.conversations.values():
            if conversation.is_group or not self._visible(conversation):
                continue
            if len(conversation.participant_ids) == 2 and set(conversation.participant_ids) == wanted:
                return conversation.model_copy(deep=True)
        return None

    async def update_fields(
        self,
        conversation_id: str,
        fields: dict[str, Any],
        only_if_last_message_id: str | None = None,
    ) -> bool:
        conversation = self.conversations.get(conversation_id)
        if conversation is None:
            return False
        if only_if_last_message_id is not None and conversation.last_message_id != only_if_last_message_id:
            return False
        self.conversations[conversation_id] = Conversation.model_validate({**conversation.model_dump(), **fields})
        return True

    async def set_map_entry(self, conversation_id: str, field: str, key: str, value: Any) -> None:
        conversation = self.conversations.get(conversation_id)
        if conversation is None:
            return
        getattr(conversation, field)[key] = value
