"""
Messaging controller (Facade).

'MessagingController' is the single entry point the HTTP layer talks to. It
wires one 'ConversationService', 'MessageService' and 'ReactionService' over a
shared set of store backends so the message store can repair the conversation
it writes to, and exposes the services as attributes:

    controller = MessagingController.in_memory(user_lookup)
    view = await controller.messages.send_message(SendMessageInput(...), sender_id)

'from_settings' picks the backend named by 'MessagingSettings.backend':
'memory' for dict-backed stores or 'mongodb' for motor collections
('conversations', 'messages', 'reactions') in 'mongodb_database'.
"""

from loguru import logger
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from messaging_toolkit.config import MessagingSettings
from messaging_toolkit.conversation_database.data_models.conversation import ConversationDatabase
from messaging_toolkit.conversation_database.data_models.message import MessageDatabase
from messaging_toolkit.conversation_database.data_models.reaction import ReactionDatabase
from messaging_toolkit.conversation_database.data_models.user import UserLookup
from messaging_toolkit.conversation_database.in_memory import (
    InMemoryConversationDatabase,
    InMemoryMessageDatabase,
    InMemoryReactionDatabase,
)
from messaging_toolkit.conversation_database.mongodb import (
    MongoDBConversationDatabase,
    MongoDBMessageDatabase,
    MongoDBReactionDatabase,
)
from messaging_toolkit.services.conversation_service import ConversationService
from messaging_toolkit.services.message_service import MessageService
from messaging_toolkit.services.reaction_service import ReactionService
from messaging_toolkit.utils.logging import configure_logging


class MessagingController:
    def __init__(
        self,
        conversation_db: ConversationDatabase,
        message_db: MessageDatabase,
        reaction_db: ReactionDatabase,
        user_lookup: UserLookup,
        settings: MessagingSettings | None = None,
    ):
        self.settings = settings or MessagingSettings()
        self.conversation_db = conversation_db
        self.message_db = message_db
        self.reaction_db = reaction_db
        self.user_lookup = user_lookup

        self.conversations = ConversationService(conversation_db, user_lookup, self.settings)
        self.messages = MessageService(message_db, conversation_db, reaction_db, user_lookup, self.settings)
        self.reactions = ReactionService(reaction_db, message_db, conversation_db, user_lookup, self.settings)

    @classmethod
    def in_memory(cls, user_lookup: UserLookup, settings: MessagingSettings | None = None) -> "MessagingController":
        settings = settings or MessagingSettings()
        conversation_db = InMemoryConversationDatabase(settings.preview_max_length)
        return cls(
            conversation_db=conversation_db,
            message_db=InMemoryMessageDatabase(conversation_db),
            reaction_db=InMemoryReactionDatabase(),
            user_lookup=user_lookup,
            settings=settings,
        )

    @classmethod
    def mongodb(
        cls, database: AsyncIOMotorDatabase, user_lookup: UserLookup, settings: MessagingSettings | None = None
    ) -> "MessagingController":
        settings = settings or MessagingSettings()
        conversation_db = MongoDBConversationDatabase(database["conversations"], settings.preview_max_length)
        return cls(
            conversation_db=conversation_db,
            message_db=MongoDBMessageDatabase(database["messages"], conversation_db),
            reaction_db=MongoDBReactionDatabase(database["reactions"]),
            user_lookup=user_lookup,
            settings=settings,
        )

    @classmethod
    def from_settings(cls, settings: MessagingSettings, user_lookup: UserLookup) -> "MessagingController":
        """Build the controller for a deployment; this also installs the loguru sink at 'settings.log_level'."""
        configure_logging(settings.log_level)
        logger.info(f"Using '{settings.backend}' messaging backend")
        if settings.backend == "mongodb":
            client: AsyncIOMotorClient = AsyncIOMotorClient(settings.mongodb_url)
            return cls.mongodb(client[settings.mongodb_database], user_lookup, settings)
        return cls.in_memory(user_lookup, settings)

    async def ensure_indexes(self) -> None:
        """Create backend indexes where the stores support them."""
        for store in (self.conversation_db, self.message_db, self.reaction_db):
            ensure_indexes = getattr(store, "ensure_indexes", None)
            if ensure_indexes is not None:
                await ensure_indexes()
