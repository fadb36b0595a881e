"""
Request-scoped services over the conversation, message and reaction stores.

    from messaging_toolkit.services import MessageService, SendMessageInput

Every operation checks the caller's access, raises the errors of
'messaging_toolkit.errors' and returns views with users resolved.
"""

from messaging_toolkit.services.conversation_service import ConversationService
from messaging_toolkit.services.message_service import MessageService
from messaging_toolkit.services.models import (
    ConversationView,
    CreateConversationInput,
    EditMessageInput,
    MessageReplyView,
    MessageView,
    MuteInput,
    ReactionInput,
    ReactionView,
    SendMessageInput,
    UserReadView,
)
from messaging_toolkit.services.reaction_service import ReactionService

__all__ = [
    "ConversationService",
    "ConversationView",
    "CreateConversationInput",
    "EditMessageInput",
    "MessageReplyView",
    "MessageService",
    "MessageView",
    "MuteInput",
    "ReactionInput",
    "ReactionService",
    "ReactionView",
    "SendMessageInput",
    "UserReadView",
]
