"""
MongoDB store implementations backed by motor.

Each store wraps one 'AsyncIOMotorCollection'. Records are stored with their id
as '_id'. Per-user map entries ('read_by.<user>', 'muted_by.<user>',
'unread_count.<user>') are written with single-document '$set' updates on the
field path, never by rewriting the whole map, so concurrent writers touching
different users do not lose each other's updates. User ids therefore must not
contain '.' or start with '$'.
"""

from messaging_toolkit.conversation_database.mongodb.conversation import MongoDBConversationDatabase
from messaging_toolkit.conversation_database.mongodb.message import MongoDBMessageDatabase
from messaging_toolkit.conversation_database.mongodb.reaction import MongoDBReactionDatabase

__all__ = [
    "MongoDBConversationDatabase",
    "MongoDBMessageDatabase",
    "MongoDBReactionDatabase",
]
