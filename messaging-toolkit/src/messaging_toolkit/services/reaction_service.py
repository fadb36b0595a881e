"""
Reaction orchestration.

Reacting is a toggle: the same type a second time removes the reaction, a
different type replaces it in place. Listing reactions only checks that the
message exists; whoever can see the message through 'MessageService' may see
its reactions.
"""

from loguru import logger

from messaging_toolkit.config import MessagingSettings
from messaging_toolkit.conversation_database.data_models.conversation import ConversationDatabase
from messaging_toolkit.conversation_database.data_models.message import Message, MessageDatabase
from messaging_toolkit.conversation_database.data_models.reaction import Reaction, ReactionDatabase
from messaging_toolkit.conversation_database.data_models.user import UserLookup
from messaging_toolkit.errors import NotFoundError, UnauthorizedError
from messaging_toolkit.services.base import BaseService, get_participant_conversation
from messaging_toolkit.services.models import ReactionInput, ReactionView


class ReactionService(BaseService):
    def __init__(
        self,
        reaction_db: ReactionDatabase,
        message_db: MessageDatabase,
        conversation_db: ConversationDatabase,
        user_lookup: UserLookup,
        settings: MessagingSettings | None = None,
    ) -> None:
        super().__init__(user_lookup, settings)
        self.reaction_db = reaction_db
        self.message_db = message_db
        self.conversation_db = conversation_db

    async def _accessible_message(self, message_id: str, user_id: str) -> Message:
        message = await self.message_db.get_message_by_id(message_id)
        if message is None:
            raise NotFoundError(f"Message {message_id} not found")
        await get_participant_conversation(
            self.conversation_db, message.conversation_id, user_id, missing_error=UnauthorizedError
        )
        return message

    async def get_message_reactions(self, message_id: str, user_id: str | None = None) -> list[ReactionView]:
        """List a message's reactions. With 'user_id', the caller must take part in its conversation."""
        async with self._guard("get_message_reactions", message_id):
            if user_id is not None:
                await self._accessible_message(message_id, user_id)
            elif await self.message_db.get_message_by_id(message_id) is None:
                raise NotFoundError(f"Message {message_id} not found")

            reactions = await self.reaction_db.get_reactions_by_message_id(message_id)
            users = await self._resolve_users(reaction.user_id for reaction in reactions)
            return [ReactionView.from_reaction(reaction, users.get(reaction.user_id)) for reaction in reactions]

    async def add_reaction(self, reaction_input: ReactionInput, user_id: str) -> ReactionView | None:
        """Add, replace or toggle off the caller's reaction. Returns None when it was toggled off."""
        async with self._guard("add_reaction", reaction_input.message_id):
            await self._accessible_message(reaction_input.message_id, user_id)

            existing = await self.reaction_db.get_user_reaction(reaction_input.message_id, user_id)
            if existing is not None and existing.reaction_type == reaction_input.reaction_type:
                await self.reaction_db.remove_reaction(reaction_input.message_id, user_id)
                logger.debug(f"User {user_id} toggled off {existing.reaction_type} on {reaction_input.message_id}")
                return None

            reaction = await self.reaction_db.add_reaction(
                Reaction(
                    message_id=reaction_input.message_id,
                    user_id=user_id,
                    reaction_type=reaction_input.reaction_type,
                )
            )
            user = await self.user_lookup.get_minimal_user(user_id)
            return ReactionView.from_reaction(reaction, user)

    async def remove_reaction(self, message_id: str, user_id: str) -> None:
        async with self._guard("remove_reaction", message_id):
            await self._accessible_message(message_id, user_id)
            await self.reaction_db.remove_reaction(message_id, user_id)
