"""
Plumbing shared by the three services.

'guarded_operation' wraps every service call: domain errors pass through
unchanged, anything else is logged with the operation name and entity id and
re-raised as 'OperationFailedError'. It also applies the configured deadline
through 'asyncio.timeout', so an expired deadline surfaces the same way.
"""

import asyncio
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

from loguru import logger

from messaging_toolkit.config import MessagingSettings
from messaging_toolkit.conversation_database.data_models.conversation import Conversation, ConversationDatabase
from messaging_toolkit.conversation_database.data_models.user import MinimalUser, UserLookup
from messaging_toolkit.errors import MessagingError, NotFoundError, OperationFailedError, UnauthorizedError


@asynccontextmanager
async def guarded_operation(
    operation: str, entity_id: str | None = None, timeout: float | None = None
) -> AsyncIterator[None]:
    try:
        async with asyncio.timeout(timeout):
            yield
    except MessagingError:
        raise
    except Exception as exc:
        logger.exception(f"{operation} failed (entity={entity_id}): {exc!r}")
        raise OperationFailedError(operation, entity_id) from exc


class BaseService:
    def __init__(self, user_lookup: UserLookup, settings: MessagingSettings | None = None) -> None:
        self.user_lookup = user_lookup
        self.settings = settings or MessagingSettings()

    def _guard(self, operation: str, entity_id: str | None = None):
        return guarded_operation(operation, entity_id, self.settings.operation_timeout_seconds)

    async def _resolve_users(self, user_ids: Iterable[str | None]) -> dict[str, MinimalUser | None]:
        """Look up each distinct id once. Unresolvable users map to None."""
        unique = list(dict.fromkeys(user_id for user_id in user_ids if user_id))
        users = await asyncio.gather(*(self.user_lookup.get_minimal_user(user_id) for user_id in unique))
        return dict(zip(unique, users))

    @staticmethod
    def _skip(page: int, page_size: int) -> int:
        return max(page - 1, 0) * page_size


async def get_participant_conversation(
    conversation_db: ConversationDatabase,
    conversation_id: str,
    user_id: str,
    missing_error: type[MessagingError] = NotFoundError,
) -> Conversation:
    """Load a visible conversation and check that 'user_id' takes part in it."""
    conversation = await conversation_db.get_conversation_by_id(conversation_id)
    if conversation is None:
        raise missing_error(f"Conversation {conversation_id} not found")
    if not conversation.has_participant(user_id):
        raise UnauthorizedError(f"User {user_id} is not a participant of conversation {conversation_id}")
    return conversation
