from typing import Any

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING

from messaging_toolkit.conversation_database.data_models.conversation import (
    PREVIEW_MAX_LENGTH,
    Conversation,
    ConversationDatabase,
    ConversationStatus,
)
from messaging_toolkit.conversation_database.mongodb.documents import from_document, to_document

_NOT_DELETED = {"$ne": ConversationStatus.DELETED.value}


class MongoDBConversationDatabase(ConversationDatabase):
    def __init__(self, collection: AsyncIOMotorCollection, preview_max_length: int = PREVIEW_MAX_LENGTH) -> None:
        super().__init__(preview_max_length)
        self.collection = collection

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("participant_ids", ASCENDING), ("last_activity_timestamp", DESCENDING)])

    async def create_conversation(self, conversation: Conversation) -> Conversation:
        stored = conversation.model_copy(update={"status": ConversationStatus.ACTIVE})
        await self.collection.insert_one(to_document(stored))
        return stored

    async def get_conversation_by_id(self, conversation_id: str) -> Conversation | None:
        document = await self.collection.find_one({"_id": conversation_id, "status": _NOT_DELETED})
        return from_document(Conversation, document) if document else None

    async def get_conversations_by_user_id(self, user_id: str, skip: int = 0, limit: int = 20) -> list[Conversation]:
        cursor = (
            self.collection.find({"participant_ids": user_id, "status": _NOT_DELETED})
            .sort("last_activity_timestamp", DESCENDING)
            .skip(skip)
            .limit(limit)
        )
        return [from_document(Conversation, document) for document in await cursor.to_list(length=limit)]

    async def count_conversations_by_user_id(self, user_id: str) -> int:
        return await self.collection.count_documents({"participant_ids": user_id, "status": _NOT_DELETED})

    async def get_conversation_ids_by_user_id(self, user_id: str) -> list[str]:
        cursor = self.collection.find({"participant_ids": user_id}, {"_id": 1})
        return [document["_id"] for document in await cursor.to_list(length=None)]

    async def find_direct_conversation(self, user_a: str, user_b: str) -> Conversation | None:
        document = await self.collection.find_one(
            {
                "participant_ids": {"$all": [user_a, user_b], "$size": 2},
                "is_group": False,
                "status": _NOT_DELETED,
            }
        )
        return from_document(Conversation, document) if document else None

    async def update_fields(
        self,
        conversation_id: str,
        fields: dict[str, Any],
        only_if_last_message_id: str | None = None,
    ) -> bool:
        query: dict[str, Any] = {"_id": conversation_id}
        if only_if_last_message_id is not None:
            query["last_message_id"] = only_if_last_message_id
        result = await self.collection.update_one(query, {"$set": fields})
        return result.matched_count > 0

    async def set_map_entry(self, conversation_id: str, field: str, key: str, value: Any) -> None:
        await self.collection.update_one({"_id": conversation_id}, {"$set": {f"{field}.{key}": value}})
