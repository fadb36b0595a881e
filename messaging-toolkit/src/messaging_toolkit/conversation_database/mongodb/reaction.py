from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from messaging_toolkit.conversation_database.data_models.reaction import Reaction, ReactionDatabase
from messaging_toolkit.conversation_database.mongodb.documents import from_document, to_document


class MongoDBReactionDatabase(ReactionDatabase):
    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self.collection = collection

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("message_id", ASCENDING), ("user_id", ASCENDING)], unique=True)

    async def insert_reaction(self, reaction: Reaction) -> Reaction:
        try:
            await self.collection.insert_one(to_document(reaction))
        except DuplicateKeyError:
            # A concurrent first reaction from the same user landed in between.
            await self.update_reaction(reaction.message_id, reaction.user_id, reaction.reaction_type)
            stored = await self.get_user_reaction(reaction.message_id, reaction.user_id)
            return stored if stored is not None else reaction
        return reaction

    async def get_reactions_by_message_id(self, message_id: str) -> list[Reaction]:
        cursor = self.collection.find({"message_id": message_id}).sort("create_timestamp", ASCENDING)
        return [from_document(Reaction, document) for document in await cursor.to_list(length=None)]

    async def get_user_reaction(self, message_id: str, user_id: str) -> Reaction | None:
        document = await self.collection.find_one({"message_id": message_id, "user_id": user_id})
        return from_document(Reaction, document) if document else None

    async def update_reaction(self, message_id: str, user_id: str, reaction_type: str) -> None:
        await self.collection.update_one(
            {"message_id": message_id, "user_id": user_id}, {"$set": {"reaction_type": reaction_type}}
        )

    async def remove_reaction(self, message_id: str, user_id: str) -> bool:
        result = await self.collection.delete_one({"message_id": message_id, "user_id": user_id})
        return result.deleted_count > 0
