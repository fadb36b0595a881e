"""
Conversation listing, creation and lifecycle.

Views are computed per caller: a direct conversation is titled and pictured
after the other participant, a group after its stored title and image, each
with a configurable fallback. Unread and mute flags come from the caller's
entry in the conversation's per-user maps.
"""

from loguru import logger

from messaging_toolkit.config import MessagingSettings
from messaging_toolkit.conversation_database.data_models.conversation import Conversation, ConversationDatabase
from messaging_toolkit.conversation_database.data_models.user import MinimalUser, UserLookup
from messaging_toolkit.errors import InvalidOperationError, NotFoundError
from messaging_toolkit.services.base import BaseService, get_participant_conversation
from messaging_toolkit.services.models import ConversationView, CreateConversationInput
from messaging_toolkit.utils.time import get_current_timestamp


class ConversationService(BaseService):
    def __init__(
        self,
        conversation_db: ConversationDatabase,
        user_lookup: UserLookup,
        settings: MessagingSettings | None = None,
    ) -> None:
        super().__init__(user_lookup, settings)
        self.conversation_db = conversation_db

    async def get_user_conversations(
        self, user_id: str, page: int = 1, page_size: int | None = None
    ) -> list[ConversationView]:
        page_size = page_size or self.settings.conversation_page_size
        async with self._guard("get_user_conversations", user_id):
            conversations = await self.conversation_db.get_conversations_by_user_id(
                user_id, self._skip(page, page_size), page_size
            )
            return [await self._to_view(conversation, user_id) for conversation in conversations]

    async def count_user_conversations(self, user_id: str) -> int:
        async with self._guard("count_user_conversations", user_id):
            return await self.conversation_db.count_conversations_by_user_id(user_id)

    async def get_conversation(self, conversation_id: str, user_id: str) -> ConversationView:
        async with self._guard("get_conversation", conversation_id):
            conversation = await get_participant_conversation(self.conversation_db, conversation_id, user_id)
            return await self._to_view(conversation, user_id)

    async def create_conversation(
        self, conversation_input: CreateConversationInput, creator_id: str
    ) -> ConversationView:
        async with self._guard("create_conversation", creator_id):
            participant_ids = list(dict.fromkeys([*conversation_input.participant_ids, creator_id]))

            if not conversation_input.is_group:
                if len(participant_ids) != 2:
                    raise InvalidOperationError("A direct conversation needs exactly two distinct participants")
                other_id = next(pid for pid in participant_ids if pid != creator_id)
                conversation = await self.conversation_db.get_or_create_direct_conversation(creator_id, other_id)
                return await self._to_view(conversation, creator_id)

            if len(participant_ids) < 2:
                raise InvalidOperationError("A group conversation needs at least one other participant")

            now = get_current_timestamp()
            conversation = await self.conversation_db.create_conversation(
                Conversation(
                    participant_ids=participant_ids,
                    is_group=True,
                    title=conversation_input.title,
                    image_url=conversation_input.image_url,
                    is_vanish=conversation_input.is_vanish,
                    create_timestamp=now,
                    last_activity_timestamp=now,
                )
            )
            logger.info(f"User {creator_id} created group conversation {conversation.id}")
            return await self._to_view(conversation, creator_id)

    async def get_or_create_direct_conversation(self, current_user_id: str, other_user_id: str) -> ConversationView:
        async with self._guard("get_or_create_direct_conversation", other_user_id):
            if current_user_id == other_user_id:
                raise InvalidOperationError("Cannot start a conversation with yourself")
            if await self.user_lookup.get_minimal_user(other_user_id) is None:
                raise NotFoundError(f"User {other_user_id} not found")

            conversation = await self.conversation_db.get_or_create_direct_conversation(current_user_id, other_user_id)
            return await self._to_view(conversation, current_user_id)

    async def mute_conversation(self, conversation_id: str, user_id: str, mute: bool) -> None:
        async with self._guard("mute_conversation", conversation_id):
            await get_participant_conversation(self.conversation_db, conversation_id, user_id)
            await self.conversation_db.set_muted(conversation_id, user_id, mute)

    async def archive_conversation(self, conversation_id: str, user_id: str) -> None:
        async with self._guard("archive_conversation", conversation_id):
            await get_participant_conversation(self.conversation_db, conversation_id, user_id)
            await self.conversation_db.archive_conversation(conversation_id, user_id)

    async def delete_conversation(self, conversation_id: str, user_id: str) -> None:
        async with self._guard("delete_conversation", conversation_id):
            await get_participant_conversation(self.conversation_db, conversation_id, user_id)
            await self.conversation_db.delete_conversation(conversation_id, user_id)

    async def _to_view(self, conversation: Conversation, current_user_id: str) -> ConversationView:
        users = await self._resolve_users([*conversation.participant_ids, conversation.last_message_sender_id])
        # Unresolvable participants are left out of the list.
        participants = [users[pid] for pid in conversation.participant_ids if users.get(pid) is not None]

        return ConversationView(
            id=conversation.id,
            participants=participants,
            last_message_preview=conversation.last_message_preview,
            last_message_sender=users.get(conversation.last_message_sender_id or ""),
            last_activity_timestamp=conversation.last_activity_timestamp,
            title=self._title(conversation, participants, current_user_id),
            image_url=self._image_url(conversation, participants, current_user_id),
            is_group=conversation.is_group,
            is_vanish=conversation.is_vanish,
            unread_count=conversation.unread_count.get(current_user_id, 0),
            is_muted=conversation.muted_by.get(current_user_id, False),
            status=conversation.status,
        )

    @staticmethod
    def _other_participant(participants: list[MinimalUser], current_user_id: str) -> MinimalUser | None:
        return next((user for user in participants if user.id != current_user_id), None)

    def _title(self, conversation: Conversation, participants: list[MinimalUser], current_user_id: str) -> str:
        if conversation.is_group:
            return conversation.title or self.settings.default_group_title
        other = self._other_participant(participants, current_user_id)
        return other.username if other else self.settings.default_direct_title

    def _image_url(self, conversation: Conversation, participants: list[MinimalUser], current_user_id: str) -> str:
        if conversation.is_group:
            return conversation.image_url or self.settings.default_group_image_url
        other = self._other_participant(participants, current_user_id)
        if other and other.profile_picture_url:
            return other.profile_picture_url
        return self.settings.default_profile_image_url
