import re
from typing import Any

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError

from messaging_toolkit.conversation_database.data_models.conversation import ConversationDatabase
from messaging_toolkit.conversation_database.data_models.message import MEDIA_MESSAGE_TYPES, Message, MessageDatabase
from messaging_toolkit.conversation_database.mongodb.documents import from_document, to_document


class MongoDBMessageDatabase(MessageDatabase):
    def __init__(self, collection: AsyncIOMotorCollection, conversation_db: ConversationDatabase) -> None:
        super().__init__(conversation_db)
        self.collection = collection

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("conversation_id", ASCENDING), ("create_timestamp", ASCENDING)])

    async def _find(self, query: dict[str, Any], direction: int, skip: int, limit: int) -> list[Message]:
        cursor = self.collection.find(query).sort("create_timestamp", direction).skip(skip).limit(limit)
        return [from_document(Message, document) for document in await cursor.to_list(length=limit)]

    async def insert_message(self, message: Message) -> tuple[Message, bool]:
        existing = await self.collection.find_one({"_id": message.id})
        if existing is not None:
            return from_document(Message, existing), False
        try:
            await self.collection.insert_one(to_document(message))
        except DuplicateKeyError:
            # Lost the race against a concurrent retry of the same send.
            existing = await self.collection.find_one({"_id": message.id})
            return from_document(Message, existing), False
        return message, True

    async def get_message_by_id(self, message_id: str) -> Message | None:
        document = await self.collection.find_one({"_id": message_id, "is_deleted": False})
        return from_document(Message, document) if document else None

    async def get_messages_by_conversation_id(
        self, conversation_id: str, skip: int = 0, limit: int = 50
    ) -> list[Message]:
        return await self._find({"conversation_id": conversation_id, "is_deleted": False}, ASCENDING, skip, limit)

    async def get_media_messages(self, conversation_id: str, skip: int = 0, limit: int = 20) -> list[Message]:
        query = {
            "conversation_id": conversation_id,
            "is_deleted": False,
            "message_type": {"$in": sorted(MEDIA_MESSAGE_TYPES)},
        }
        return await self._find(query, DESCENDING, skip, limit)

    async def find_messages_by_content(
        self, conversation_id: str, query: str, skip: int = 0, limit: int = 20
    ) -> list[Message]:
        mongo_query = {
            "conversation_id": conversation_id,
            "is_deleted": False,
            "content": {"$regex": re.escape(query), "$options": "i"},
        }
        return await self._find(mongo_query, DESCENDING, skip, limit)

    async def get_latest_message_before(self, conversation_id: str, create_timestamp: int) -> Message | None:
        document = await self.collection.find_one(
            {"conversation_id": conversation_id, "is_deleted": False, "create_timestamp": {"$lt": create_timestamp}},
            sort=[("create_timestamp", DESCENDING)],
        )
        return from_document(Message, document) if document else None

    async def count_unread_messages(self, user_id: str, conversation_ids: list[str]) -> int:
        return await self.collection.count_documents(
            {
                "conversation_id": {"$in": conversation_ids},
                "is_deleted": False,
                "sender_id": {"$ne": user_id},
                f"read_by.{user_id}": {"$exists": False},
            }
        )

    async def update_fields(self, message_id: str, fields: dict[str, Any]) -> None:
        await self.collection.update_one({"_id": message_id}, {"$set": fields})

    async def set_map_entry_if_absent(self, message_id: str, field: str, key: str, value: Any) -> bool:
        path = f"{field}.{key}"
        result = await self.collection.update_one({"_id": message_id, path: {"$exists": False}}, {"$set": {path: value}})
        return result.modified_count > 0

    async def add_to_list(self, message_id: str, field: str, value: str) -> None:
        await self.collection.update_one({"_id": message_id}, {"$addToSet": {field: value}})

    async def remove_from_list(self, message_id: str, field: str, value: str) -> None:
        await self.collection.update_one({"_id": message_id}, {"$pull": {field: value}})
