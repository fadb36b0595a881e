"""
Message orchestration.

'MessageService' is the only service that writes to both the message and the
conversation stores: sending, editing and deleting a message invalidate the
conversation's last-message preview and unread counters, and the repair runs
as part of the same operation (see 'MessageDatabase'). Writes are not
transactional. Each step is either idempotent or a re-derivation from the
message collection, so a failed or retried call can simply be run again.

Lifecycle of a message: created -> [edited | liked | saved]* -> deleted. Once
deleted, the stores no longer return it and every further mutation is a
not-found.
"""

import asyncio

from loguru import logger

from messaging_toolkit.config import MessagingSettings
from messaging_toolkit.conversation_database.data_models.conversation import Conversation, ConversationDatabase
from messaging_toolkit.conversation_database.data_models.message import Message, MessageDatabase
from messaging_toolkit.conversation_database.data_models.reaction import ReactionDatabase
from messaging_toolkit.conversation_database.data_models.user import UserLookup
from messaging_toolkit.errors import InvalidOperationError, NotFoundError, UnauthorizedError
from messaging_toolkit.services.base import BaseService, get_participant_conversation
from messaging_toolkit.services.models import (
    MessageReplyView,
    MessageView,
    ReactionView,
    SendMessageInput,
    UserReadView,
)
from messaging_toolkit.utils.database import generate_uid
from messaging_toolkit.utils.time import get_current_timestamp


class MessageService(BaseService):
    def __init__(
        self,
        message_db: MessageDatabase,
        conversation_db: ConversationDatabase,
        reaction_db: ReactionDatabase,
        user_lookup: UserLookup,
        settings: MessagingSettings | None = None,
    ) -> None:
        super().__init__(user_lookup, settings)
        self.message_db = message_db
        self.conversation_db = conversation_db
        self.reaction_db = reaction_db

    async def _conversation_for(self, conversation_id: str, user_id: str) -> Conversation:
        return await get_participant_conversation(
            self.conversation_db, conversation_id, user_id, missing_error=UnauthorizedError
        )

    async def _message_for(self, message_id: str, user_id: str) -> tuple[Message, Conversation]:
        message = await self.message_db.get_message_by_id(message_id)
        if message is None:
            raise NotFoundError(f"Message {message_id} not found")
        conversation = await self._conversation_for(message.conversation_id, user_id)
        return message, conversation

    async def _own_message(self, message_id: str, user_id: str, action: str) -> Message:
        message = await self.message_db.get_message_by_id(message_id)
        if message is None:
            raise NotFoundError(f"Message {message_id} not found")
        if message.sender_id != user_id:
            raise UnauthorizedError(f"User {user_id} is not allowed to {action} message {message_id}")
        return message

    async def _reload_view(self, message_id: str, user_id: str) -> MessageView:
        message = await self.message_db.get_message_by_id(message_id)
        if message is None:
            raise NotFoundError(f"Message {message_id} not found")
        return await self._to_view(message, user_id)

    async def get_conversation_messages(
        self, conversation_id: str, user_id: str, page: int = 1, page_size: int | None = None
    ) -> list[MessageView]:
        page_size = page_size or self.settings.message_page_size
        async with self._guard("get_conversation_messages", conversation_id):
            await self._conversation_for(conversation_id, user_id)
            messages = await self.message_db.get_messages_by_conversation_id(
                conversation_id, self._skip(page, page_size), page_size
            )
            return await self._to_views(messages, user_id)

    async def get_message(self, message_id: str, user_id: str) -> MessageView:
        async with self._guard("get_message", message_id):
            message, _ = await self._message_for(message_id, user_id)
            return await self._to_view(message, user_id)

    async def send_message(self, message_input: SendMessageInput, sender_id: str) -> MessageView:
        async with self._guard("send_message", message_input.conversation_id):
            await self._conversation_for(message_input.conversation_id, sender_id)

            reply_to_id = (message_input.reply_to_message_id or "").strip() or None
            if reply_to_id is not None:
                reply = await self.message_db.get_message_by_id(reply_to_id)
                if reply is None or reply.conversation_id != message_input.conversation_id:
                    raise InvalidOperationError("Invalid reply message ID")

            now = get_current_timestamp()
            message = Message(
                id=message_input.message_id or generate_uid(),
                conversation_id=message_input.conversation_id,
                sender_id=sender_id,
                content=message_input.content,
                message_type=message_input.message_type,
                media=message_input.media,
                reply_to_message_id=reply_to_id,
                read_by={sender_id: now},
                create_timestamp=now,
            )
            created = await self.message_db.create_message(message)
            if created.sender_id != sender_id or created.conversation_id != message.conversation_id:
                raise InvalidOperationError(f"Message id {message.id} is already in use")
            if created.is_deleted:
                raise InvalidOperationError(f"Message {message.id} was deleted")

            logger.info(f"User {sender_id} sent message {created.id} to conversation {created.conversation_id}")
            return await self._to_view(created, sender_id)

    async def edit_message(self, message_id: str, user_id: str, new_content: str) -> MessageView:
        async with self._guard("edit_message", message_id):
            await self._own_message(message_id, user_id, "edit")
            await self.message_db.edit_message(message_id, new_content)
            logger.info(f"User {user_id} edited message {message_id}")
            return await self._reload_view(message_id, user_id)

    async def delete_message(self, message_id: str, user_id: str) -> None:
        async with self._guard("delete_message", message_id):
            message = await self._own_message(message_id, user_id, "delete")
            await self.message_db.delete_message(message_id, user_id)

            # The deleted message may have been unread for the other participants.
            conversation = await self.conversation_db.get_conversation_by_id(message.conversation_id)
            if conversation is not None:
                await self.message_db.refresh_unread_counts(conversation, exclude_user_id=user_id)
            logger.info(f"User {user_id} deleted message {message_id}")

    async def mark_as_read(self, message_id: str, user_id: str) -> None:
        async with self._guard("mark_as_read", message_id):
            _, conversation = await self._message_for(message_id, user_id)
            await self.message_db.mark_as_read(message_id, user_id)
            unread = await self.message_db.count_unread(user_id, conversation.id)
            await self.conversation_db.set_unread_count(conversation.id, user_id, unread)

    async def mark_conversation_as_read(self, conversation_id: str, user_id: str) -> None:
        async with self._guard("mark_conversation_as_read", conversation_id):
            await self._conversation_for(conversation_id, user_id)

            page_size = self.settings.message_page_size
            skip = 0
            marked = 0
            while True:
                batch = await self.message_db.get_messages_by_conversation_id(conversation_id, skip, page_size)
                for message in batch:
                    if message.sender_id != user_id and user_id not in message.read_by:
                        await self.message_db.mark_as_read(message.id, user_id)
                        marked += 1
                if len(batch) < page_size:
                    break
                skip += page_size

            await self.conversation_db.set_unread_count(conversation_id, user_id, 0)
            logger.debug(f"User {user_id} read {marked} messages in conversation {conversation_id}")

    async def toggle_like(self, message_id: str, user_id: str) -> MessageView:
        async with self._guard("toggle_like", message_id):
            await self._message_for(message_id, user_id)
            await self.message_db.toggle_like(message_id, user_id)
            return await self._reload_view(message_id, user_id)

    async def toggle_save(self, message_id: str, user_id: str) -> MessageView:
        async with self._guard("toggle_save", message_id):
            await self._message_for(message_id, user_id)
            await self.message_db.toggle_save(message_id, user_id)
            return await self._reload_view(message_id, user_id)

    async def get_media_messages(
        self, conversation_id: str, user_id: str, page: int = 1, page_size: int | None = None
    ) -> list[MessageView]:
        page_size = page_size or self.settings.media_page_size
        async with self._guard("get_media_messages", conversation_id):
            await self._conversation_for(conversation_id, user_id)
            messages = await self.message_db.get_media_messages(
                conversation_id, self._skip(page, page_size), page_size
            )
            return await self._to_views(messages, user_id)

    async def search_messages(
        self, conversation_id: str, user_id: str, query: str, page: int = 1, page_size: int | None = None
    ) -> list[MessageView]:
        page_size = page_size or self.settings.search_page_size
        async with self._guard("search_messages", conversation_id):
            await self._conversation_for(conversation_id, user_id)
            if not query or not query.strip():
                raise InvalidOperationError("Search query must not be empty")
            messages = await self.message_db.search_messages(
                conversation_id, query.strip(), self._skip(page, page_size), page_size
            )
            return await self._to_views(messages, user_id)

    async def get_unread_count(self, user_id: str, conversation_id: str | None = None) -> int:
        async with self._guard("get_unread_count", conversation_id or user_id):
            if conversation_id:
                await self._conversation_for(conversation_id, user_id)
            return await self.message_db.count_unread(user_id, conversation_id)

    async def _to_views(self, messages: list[Message], user_id: str) -> list[MessageView]:
        return list(await asyncio.gather(*(self._to_view(message, user_id) for message in messages)))

    async def _to_view(self, message: Message, current_user_id: str) -> MessageView:
        reply = None
        if message.reply_to_message_id:
            reply = await self.message_db.get_message_by_id(message.reply_to_message_id)
        reactions = await self.reaction_db.get_reactions_by_message_id(message.id)

        users = await self._resolve_users(
            [
                message.sender_id,
                reply.sender_id if reply else None,
                *message.read_by,
                *(reaction.user_id for reaction in reactions),
            ]
        )

        read_by = []
        for reader_id, read_timestamp in sorted(message.read_by.items(), key=lambda item: item[1]):
            reader = users.get(reader_id)
            read_by.append(
                UserReadView(
                    user_id=reader_id,
                    username=reader.username if reader else None,
                    profile_picture_url=reader.profile_picture_url if reader else None,
                    read_timestamp=read_timestamp,
                )
            )

        return MessageView(
            id=message.id,
            conversation_id=message.conversation_id,
            sender=users.get(message.sender_id),
            content=message.content,
            message_type=message.message_type,
            reply_to=(
                MessageReplyView(message_id=reply.id, content=reply.content, sender=users.get(reply.sender_id))
                if reply
                else None
            ),
            media=message.media,
            is_read=current_user_id in message.read_by,
            read_by=read_by,
            like_count=len(message.liked_by),
            is_liked=current_user_id in message.liked_by,
            is_saved=message.is_saved,
            is_edited=message.is_edited,
            edit_timestamp=message.edit_timestamp,
            create_timestamp=message.create_timestamp,
            reactions=[ReactionView.from_reaction(reaction, users.get(reaction.user_id)) for reaction in reactions],
        )
