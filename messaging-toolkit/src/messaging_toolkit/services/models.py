"""
Service inputs and outward views.

Inputs ('SendMessageInput', 'CreateConversationInput', ...) are what callers
hand to the services. Views ('MessageView', 'ConversationView', ...) are what
the services return: stored records with user ids resolved to 'MinimalUser'
projections and per-caller fields ('is_read', 'is_liked', 'unread_count',
'is_muted') computed for the requesting user.
"""

from pydantic import BaseModel, Field

from messaging_toolkit.conversation_database.data_models.conversation import ConversationStatus
from messaging_toolkit.conversation_database.data_models.message import MediaAttachment
from messaging_toolkit.conversation_database.data_models.reaction import Reaction
from messaging_toolkit.conversation_database.data_models.user import MinimalUser


class SendMessageInput(BaseModel):
    """
    A new message.

    'message_id' is an optional client-generated id. Re-sending with the same
    id after a timeout returns the already stored message instead of creating
    a duplicate.
    """

    conversation_id: str
    content: str = ""
    message_type: str = "text"
    reply_to_message_id: str | None = None
    media: list[MediaAttachment] = Field(default_factory=list)
    message_id: str | None = None


class EditMessageInput(BaseModel):
    content: str


class CreateConversationInput(BaseModel):
    participant_ids: list[str] = Field(default_factory=list)
    title: str | None = None
    image_url: str | None = None
    is_group: bool = False
    is_vanish: bool = False


class ReactionInput(BaseModel):
    message_id: str
    reaction_type: str = Field(min_length=1)


class MuteInput(BaseModel):
    mute: bool = True


class ReactionView(BaseModel):
    id: str
    message_id: str
    user: MinimalUser | None
    reaction_type: str
    create_timestamp: int

    @classmethod
    def from_reaction(cls, reaction: Reaction, user: MinimalUser | None) -> "ReactionView":
        return cls(
            id=reaction.id,
            message_id=reaction.message_id,
            user=user,
            reaction_type=reaction.reaction_type,
            create_timestamp=reaction.create_timestamp,
        )


class UserReadView(BaseModel):
    """A read receipt. 'username' is None when the reader cannot be resolved."""

    user_id: str
    username: str | None = None
    profile_picture_url: str | None = None
    read_timestamp: int


class MessageReplyView(BaseModel):
    message_id: str
    content: str
    sender: MinimalUser | None = None


class MessageView(BaseModel):
    id: str
    conversation_id: str
    sender: MinimalUser | None
    content: str
    message_type: str
    reply_to: MessageReplyView | None = None
    media: list[MediaAttachment] = Field(default_factory=list)
    is_read: bool
    read_by: list[UserReadView] = Field(default_factory=list)
    like_count: int = 0
    is_liked: bool = False
    is_saved: bool = False
    is_edited: bool = False
    edit_timestamp: int | None = None
    create_timestamp: int
    reactions: list[ReactionView] = Field(default_factory=list)


class ConversationView(BaseModel):
    id: str
    participants: list[MinimalUser]
    last_message_preview: str | None = None
    last_message_sender: MinimalUser | None = None
    last_activity_timestamp: int
    title: str
    image_url: str
    is_group: bool
    is_vanish: bool
    unread_count: int = 0
    is_muted: bool = False
    status: ConversationStatus
