"""
FastAPI binding for the messaging services.

'create_app' builds an application around a 'MessagingController';
'create_router' returns just the routes for mounting into an existing app, in
which case 'register_error_handlers' must be called on that app as well.

    /conversations   list, count, get, create, direct/{user_id}, mute,
                     archive, delete, messages, media, search, read
    /messages        get, send, edit, delete, read, like, save, reactions,
                     unread-count
"""

from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from messaging_toolkit.api.auth.base import AuthProvider
from messaging_toolkit.conversation_database.controller import MessagingController
from messaging_toolkit.errors import (
    InvalidOperationError,
    MessagingError,
    NotFoundError,
    OperationFailedError,
    UnauthorizedError,
)
from messaging_toolkit.services.models import (
    ConversationView,
    CreateConversationInput,
    EditMessageInput,
    MessageView,
    MuteInput,
    ReactionInput,
    ReactionView,
    SendMessageInput,
)

ERROR_STATUS_CODES: dict[type[MessagingError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    UnauthorizedError: status.HTTP_403_FORBIDDEN,
    InvalidOperationError: status.HTTP_400_BAD_REQUEST,
    OperationFailedError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class ReactionTypeInput(BaseModel):
    reaction_type: str = Field(min_length=1)


class CountResponse(BaseModel):
    count: int


async def _handle_messaging_error(request: Request, exc: Exception) -> JSONResponse:
    status_code = next(
        (code for error_type, code in ERROR_STATUS_CODES.items() if isinstance(exc, error_type)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    message = exc.message if isinstance(exc, MessagingError) else "Internal error"
    return JSONResponse(status_code=status_code, content={"detail": message})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MessagingError, _handle_messaging_error)


def create_router(controller: MessagingController, auth_provider: AuthProvider) -> APIRouter:
    router = APIRouter()
    current_user = Depends(auth_provider.get_current_user_id)

    conversations = controller.conversations
    messages = controller.messages
    reactions = controller.reactions

    @router.get("/conversations", response_model=list[ConversationView])
    async def get_conversations(
        page: int = Query(1, ge=1), page_size: int | None = Query(None, ge=1), user_id: str = current_user
    ):
        return await conversations.get_user_conversations(user_id, page, page_size)

    @router.get("/conversations/count", response_model=CountResponse)
    async def count_conversations(user_id: str = current_user):
        return CountResponse(count=await conversations.count_user_conversations(user_id))

    @router.get("/conversations/{conversation_id}", response_model=ConversationView)
    async def get_conversation(conversation_id: str, user_id: str = current_user):
        return await conversations.get_conversation(conversation_id, user_id)

    @router.post("/conversations", response_model=ConversationView, status_code=status.HTTP_201_CREATED)
    async def create_conversation(conversation_input: CreateConversationInput, user_id: str = current_user):
        return await conversations.create_conversation(conversation_input, user_id)

    @router.post("/conversations/direct/{other_user_id}", response_model=ConversationView)
    async def create_direct_conversation(other_user_id: str, user_id: str = current_user):
        return await conversations.get_or_create_direct_conversation(user_id, other_user_id)

    @router.put("/conversations/{conversation_id}/mute", status_code=status.HTTP_204_NO_CONTENT)
    async def mute_conversation(conversation_id: str, mute_input: MuteInput, user_id: str = current_user):
        await conversations.mute_conversation(conversation_id, user_id, mute_input.mute)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.put("/conversations/{conversation_id}/archive", status_code=status.HTTP_204_NO_CONTENT)
    async def archive_conversation(conversation_id: str, user_id: str = current_user):
        await conversations.archive_conversation(conversation_id, user_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.delete("/conversations/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_conversation(conversation_id: str, user_id: str = current_user):
        await conversations.delete_conversation(conversation_id, user_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.get("/conversations/{conversation_id}/messages", response_model=list[MessageView])
    async def get_conversation_messages(
        conversation_id: str,
        page: int = Query(1, ge=1),
        page_size: int | None = Query(None, ge=1),
        user_id: str = current_user,
    ):
        return await messages.get_conversation_messages(conversation_id, user_id, page, page_size)

    @router.get("/conversations/{conversation_id}/media", response_model=list[MessageView])
    async def get_conversation_media(
        conversation_id: str,
        page: int = Query(1, ge=1),
        page_size: int | None = Query(None, ge=1),
        user_id: str = current_user,
    ):
        return await messages.get_media_messages(conversation_id, user_id, page, page_size)

    @router.get("/conversations/{conversation_id}/search", response_model=list[MessageView])
    async def search_conversation(
        conversation_id: str,
        query: str = Query(""),
        page: int = Query(1, ge=1),
        page_size: int | None = Query(None, ge=1),
        user_id: str = current_user,
    ):
        return await messages.search_messages(conversation_id, user_id, query, page, page_size)

    @router.post("/conversations/{conversation_id}/read", status_code=status.HTTP_204_NO_CONTENT)
    async def mark_conversation_as_read(conversation_id: str, user_id: str = current_user):
        await messages.mark_conversation_as_read(conversation_id, user_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.get("/messages/unread-count", response_model=CountResponse)
    async def get_unread_count(conversation_id: str | None = Query(None), user_id: str = current_user):
        return CountResponse(count=await messages.get_unread_count(user_id, conversation_id))

    @router.get("/messages/{message_id}", response_model=MessageView)
    async def get_message(message_id: str, user_id: str = current_user):
        return await messages.get_message(message_id, user_id)

    @router.post("/messages", response_model=MessageView, status_code=status.HTTP_201_CREATED)
    async def send_message(message_input: SendMessageInput, user_id: str = current_user):
        return await messages.send_message(message_input, user_id)

    @router.put("/messages/{message_id}", response_model=MessageView)
    async def edit_message(message_id: str, edit_input: EditMessageInput, user_id: str = current_user):
        return await messages.edit_message(message_id, user_id, edit_input.content)

    @router.delete("/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_message(message_id: str, user_id: str = current_user):
        await messages.delete_message(message_id, user_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.post("/messages/{message_id}/read", status_code=status.HTTP_204_NO_CONTENT)
    async def mark_as_read(message_id: str, user_id: str = current_user):
        await messages.mark_as_read(message_id, user_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.post("/messages/{message_id}/like", response_model=MessageView)
    async def toggle_like(message_id: str, user_id: str = current_user):
        return await messages.toggle_like(message_id, user_id)

    @router.post("/messages/{message_id}/save", response_model=MessageView)
    async def toggle_save(message_id: str, user_id: str = current_user):
        return await messages.toggle_save(message_id, user_id)

    @router.get("/messages/{message_id}/reactions", response_model=list[ReactionView])
    async def get_reactions(message_id: str, user_id: str = current_user):
        return await reactions.get_message_reactions(message_id, user_id)

    @router.post("/messages/{message_id}/reactions", response_model=ReactionView | None)
    async def add_reaction(message_id: str, reaction_input: ReactionTypeInput, user_id: str = current_user):
        return await reactions.add_reaction(
            ReactionInput(message_id=message_id, reaction_type=reaction_input.reaction_type), user_id
        )

    @router.delete("/messages/{message_id}/reactions", status_code=status.HTTP_204_NO_CONTENT)
    async def remove_reaction(message_id: str, user_id: str = current_user):
        await reactions.remove_reaction(message_id, user_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return router


def create_app(controller: MessagingController, auth_provider: AuthProvider) -> FastAPI:
    app = FastAPI(title="Messaging Toolkit")
    auth_provider.bind_to_app(app)
    register_error_handlers(app)
    app.include_router(create_router(controller, auth_provider), prefix="/api")
    return app
