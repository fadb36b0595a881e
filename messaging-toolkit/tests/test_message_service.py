import asyncio

import pytest

from messaging_toolkit.config import MessagingSettings
from messaging_toolkit.conversation_database.controller import MessagingController
from messaging_toolkit.conversation_database.data_models.conversation import Conversation
from messaging_toolkit.conversation_database.data_models.message import MediaAttachment
from messaging_toolkit.errors import InvalidOperationError, NotFoundError, OperationFailedError, UnauthorizedError
from messaging_toolkit.services.models import ReactionInput, SendMessageInput


@pytest.fixture
def messages(controller):
    return controller.messages


async def say(messages, conversation_id, sender_id, content, **kwargs):
    return await messages.send_message(
        SendMessageInput(conversation_id=conversation_id, content=content, **kwargs), sender_id
    )


class TestSendMessage:
    """Sending messages and the conversation state they leave behind"""

    @pytest.mark.asyncio
    async def test_hello_scenario(self, messages, message_db, conversation_db, direct_conversation):
        view = await say(messages, direct_conversation.id, "alice", "hello")

        stored = await message_db.get_message_by_id(view.id)
        assert list(stored.read_by) == ["alice"]
        conversation = await conversation_db.get_conversation_by_id(direct_conversation.id)
        assert conversation.last_message_preview == "hello"
        assert conversation.unread_count["bob"] == 1
        assert conversation.unread_count.get("alice", 0) == 0

    @pytest.mark.asyncio
    async def test_view_resolves_sender_and_read_receipts(self, messages, direct_conversation):
        view = await say(messages, direct_conversation.id, "alice", "hello")

        assert view.sender.username == "Alice"
        assert view.is_read is True
        assert [receipt.user_id for receipt in view.read_by] == ["alice"]
        assert view.read_by[0].username == "Alice"
        assert view.like_count == 0
        assert view.reactions == []

    @pytest.mark.asyncio
    async def test_unread_counter_accumulates(self, messages, conversation_db, direct_conversation):
        for text in ("one", "two", "three"):
            await say(messages, direct_conversation.id, "alice", text)

        conversation = await conversation_db.get_conversation_by_id(direct_conversation.id)
        assert conversation.unread_count["bob"] == 3

    @pytest.mark.asyncio
    async def test_non_participant_cannot_send(self, messages, direct_conversation):
        with pytest.raises(UnauthorizedError):
            await say(messages, direct_conversation.id, "carol", "let me in")

    @pytest.mark.asyncio
    async def test_missing_conversation_is_unauthorized(self, messages):
        with pytest.raises(UnauthorizedError):
            await say(messages, "no-such-conversation", "alice", "hello?")

    @pytest.mark.asyncio
    async def test_reply_target_must_be_in_same_conversation(self, messages, conversation_db, direct_conversation):
        other = await conversation_db.get_or_create_direct_conversation("alice", "carol")
        elsewhere = await say(messages, other.id, "carol", "over here")

        with pytest.raises(InvalidOperationError):
            await say(messages, direct_conversation.id, "alice", "re:", reply_to_message_id=elsewhere.id)
        with pytest.raises(InvalidOperationError):
            await say(messages, direct_conversation.id, "alice", "re:", reply_to_message_id="missing")

    @pytest.mark.asyncio
    async def test_reply_preview(self, messages, direct_conversation):
        original = await say(messages, direct_conversation.id, "bob", "dinner?")
        reply = await say(messages, direct_conversation.id, "alice", "yes", reply_to_message_id=original.id)

        assert reply.reply_to.message_id == original.id
        assert reply.reply_to.content == "dinner?"
        assert reply.reply_to.sender.username == "Bob"

    @pytest.mark.asyncio
    async def test_retry_with_same_id_does_not_duplicate(self, messages, conversation_db, direct_conversation):
        first = await say(messages, direct_conversation.id, "alice", "hello", message_id="client-1")
        retry = await say(messages, direct_conversation.id, "alice", "hello", message_id="client-1")

        assert retry.id == first.id
        assert len(await messages.get_conversation_messages(direct_conversation.id, "alice")) == 1
        conversation = await conversation_db.get_conversation_by_id(direct_conversation.id)
        assert conversation.unread_count["bob"] == 1

    @pytest.mark.asyncio
    async def test_reused_id_from_another_sender_is_rejected(self, messages, direct_conversation):
        await say(messages, direct_conversation.id, "alice", "hello", message_id="taken")

        with pytest.raises(InvalidOperationError):
            await say(messages, direct_conversation.id, "bob", "hijack", message_id="taken")

    @pytest.mark.asyncio
    async def test_resend_of_deleted_id_is_rejected(self, messages, direct_conversation):
        await say(messages, direct_conversation.id, "alice", "oops", message_id="client-9")
        await messages.delete_message("client-9", "alice")

        with pytest.raises(InvalidOperationError):
            await say(messages, direct_conversation.id, "alice", "oops", message_id="client-9")
        assert await messages.get_conversation_messages(direct_conversation.id, "bob") == []

    @pytest.mark.asyncio
    async def test_media_messages(self, messages, direct_conversation):
        await say(
            messages,
            direct_conversation.id,
            "alice",
            "",
            message_type="image",
            media=[MediaAttachment(media_type="image", url="https://cdn/a.jpg")],
        )
        await say(messages, direct_conversation.id, "alice", "just text")

        media = await messages.get_media_messages(direct_conversation.id, "bob")
        assert len(media) == 1
        assert media[0].media[0].url == "https://cdn/a.jpg"


class TestReadState:
    """Read receipts and unread counters"""

    @pytest.mark.asyncio
    async def test_mark_conversation_as_read(self, messages, message_db, conversation_db, direct_conversation):
        for text in ("a", "b", "c"):
            await say(messages, direct_conversation.id, "alice", text)
        await say(messages, direct_conversation.id, "bob", "mine")

        await messages.mark_conversation_as_read(direct_conversation.id, "bob")

        for message in await message_db.get_messages_by_conversation_id(direct_conversation.id):
            assert "bob" in message.read_by
        conversation = await conversation_db.get_conversation_by_id(direct_conversation.id)
        assert conversation.unread_count["bob"] == 0
        assert await messages.get_unread_count("bob", direct_conversation.id) == 0

    @pytest.mark.asyncio
    async def test_mark_conversation_as_read_covers_every_page(self, user_lookup):
        controller = MessagingController.in_memory(user_lookup, MessagingSettings(message_page_size=2))
        conversation = await controller.conversation_db.get_or_create_direct_conversation("alice", "bob")
        for i in range(5):
            await say(controller.messages, conversation.id, "alice", f"m{i}")

        await controller.messages.mark_conversation_as_read(conversation.id, "bob")

        assert await controller.message_db.count_unread("bob", conversation.id) == 0

    @pytest.mark.asyncio
    async def test_mark_single_message_rederives_counter(self, messages, conversation_db, direct_conversation):
        first = await say(messages, direct_conversation.id, "alice", "one")
        await say(messages, direct_conversation.id, "alice", "two")

        await messages.mark_as_read(first.id, "bob")

        conversation = await conversation_db.get_conversation_by_id(direct_conversation.id)
        assert conversation.unread_count["bob"] == 1
        view = await messages.get_message(first.id, "bob")
        assert view.is_read is True
        assert [receipt.user_id for receipt in view.read_by] == ["alice", "bob"]

    @pytest.mark.asyncio
    async def test_unread_count_matches_collection_after_any_interleaving(
        self, messages, message_db, direct_conversation
    ):
        sent = []
        for step in range(6):
            sender = "alice" if step % 2 == 0 else "bob"
            sent.append(await say(messages, direct_conversation.id, sender, f"s{step}"))
            if step == 3:
                await messages.mark_as_read(sent[0].id, "bob")
        await messages.delete_message(sent[4].id, "alice")

        expected = sum(
            1
            for message in await message_db.get_messages_by_conversation_id(direct_conversation.id)
            if message.sender_id != "bob" and "bob" not in message.read_by
        )
        assert await messages.get_unread_count("bob", direct_conversation.id) == expected == 1

    @pytest.mark.asyncio
    async def test_non_participant_cannot_mark_read(self, messages, direct_conversation):
        message = await say(messages, direct_conversation.id, "alice", "private")

        with pytest.raises(UnauthorizedError):
            await messages.mark_as_read(message.id, "carol")
        with pytest.raises(UnauthorizedError):
            await messages.mark_conversation_as_read(direct_conversation.id, "carol")

    @pytest.mark.asyncio
    async def test_mark_missing_message_is_not_found(self, messages):
        with pytest.raises(NotFoundError):
            await messages.mark_as_read("missing", "bob")


class TestEditAndDelete:
    """Sender-only edits and deletes"""

    @pytest.mark.asyncio
    async def test_edit_by_sender(self, messages, conversation_db, direct_conversation):
        message = await say(messages, direct_conversation.id, "alice", "helo")

        edited = await messages.edit_message(message.id, "alice", "hello")

        assert edited.content == "hello"
        assert edited.is_edited is True
        assert edited.create_timestamp == message.create_timestamp
        conversation = await conversation_db.get_conversation_by_id(direct_conversation.id)
        assert conversation.last_message_preview == "hello"

    @pytest.mark.asyncio
    async def test_edit_by_other_participant_is_unauthorized(self, messages, direct_conversation):
        message = await say(messages, direct_conversation.id, "alice", "mine")

        with pytest.raises(UnauthorizedError):
            await messages.edit_message(message.id, "bob", "ours")

    @pytest.mark.asyncio
    async def test_edit_missing_message_is_not_found(self, messages):
        with pytest.raises(NotFoundError):
            await messages.edit_message("missing", "alice", "x")

    @pytest.mark.asyncio
    async def test_delete_latest_of_three_reverts_preview(self, messages, conversation_db, direct_conversation):
        await say(messages, direct_conversation.id, "alice", "first")
        await say(messages, direct_conversation.id, "alice", "second message")
        third = await say(messages, direct_conversation.id, "alice", "third")

        await messages.delete_message(third.id, "alice")

        conversation = await conversation_db.get_conversation_by_id(direct_conversation.id)
        assert conversation.last_message_preview == "second message"
        with pytest.raises(NotFoundError):
            await messages.get_message(third.id, "alice")

    @pytest.mark.asyncio
    async def test_delete_refreshes_unread_for_others(self, messages, conversation_db, direct_conversation):
        await say(messages, direct_conversation.id, "alice", "keep")
        oops = await say(messages, direct_conversation.id, "alice", "oops")

        await messages.delete_message(oops.id, "alice")

        conversation = await conversation_db.get_conversation_by_id(direct_conversation.id)
        assert conversation.unread_count["bob"] == 1

    @pytest.mark.asyncio
    async def test_delete_by_other_participant_is_unauthorized(self, messages, direct_conversation):
        message = await say(messages, direct_conversation.id, "alice", "mine")

        with pytest.raises(UnauthorizedError):
            await messages.delete_message(message.id, "bob")

    @pytest.mark.asyncio
    async def test_mutations_after_delete_are_not_found(self, messages, direct_conversation):
        message = await say(messages, direct_conversation.id, "alice", "gone soon")
        await messages.delete_message(message.id, "alice")

        with pytest.raises(NotFoundError):
            await messages.edit_message(message.id, "alice", "too late")
        with pytest.raises(NotFoundError):
            await messages.toggle_like(message.id, "bob")
        with pytest.raises(NotFoundError):
            await messages.delete_message(message.id, "alice")


class TestLikeSaveAndSearch:
    """Likes, saves and searching"""

    @pytest.mark.asyncio
    async def test_toggle_like(self, messages, direct_conversation):
        message = await say(messages, direct_conversation.id, "alice", "nice view")

        liked = await messages.toggle_like(message.id, "bob")
        assert liked.like_count == 1
        assert liked.is_liked is True

        unliked = await messages.toggle_like(message.id, "bob")
        assert unliked.like_count == 0
        assert unliked.is_liked is False

    @pytest.mark.asyncio
    async def test_toggle_save(self, messages, direct_conversation):
        message = await say(messages, direct_conversation.id, "alice", "address: 12 Elm St")

        assert (await messages.toggle_save(message.id, "bob")).is_saved is True
        assert (await messages.toggle_save(message.id, "bob")).is_saved is False

    @pytest.mark.asyncio
    async def test_non_participant_cannot_like_or_save(self, messages, direct_conversation):
        message = await say(messages, direct_conversation.id, "alice", "hi")

        with pytest.raises(UnauthorizedError):
            await messages.toggle_like(message.id, "carol")
        with pytest.raises(UnauthorizedError):
            await messages.toggle_save(message.id, "carol")

    @pytest.mark.asyncio
    async def test_search(self, messages, direct_conversation):
        await say(messages, direct_conversation.id, "alice", "Tent is packed")
        await say(messages, direct_conversation.id, "bob", "bring the TENT pegs")

        found = await messages.search_messages(direct_conversation.id, "bob", "tent")
        assert [view.content for view in found] == ["bring the TENT pegs", "Tent is packed"]

    @pytest.mark.asyncio
    async def test_blank_search_is_invalid(self, messages, direct_conversation):
        with pytest.raises(InvalidOperationError):
            await messages.search_messages(direct_conversation.id, "alice", "  ")

    @pytest.mark.asyncio
    async def test_non_participant_cannot_read_history(self, messages, direct_conversation):
        message = await say(messages, direct_conversation.id, "alice", "secret")

        with pytest.raises(UnauthorizedError):
            await messages.get_conversation_messages(direct_conversation.id, "carol")
        with pytest.raises(UnauthorizedError):
            await messages.get_message(message.id, "carol")
        with pytest.raises(UnauthorizedError):
            await messages.search_messages(direct_conversation.id, "carol", "secret")


class TestViewAssembly:
    """Views with partially resolvable users"""

    @pytest.mark.asyncio
    async def test_unresolvable_users_are_kept_without_profile(self, controller, conversation_db):
        group = await conversation_db.create_conversation(
            Conversation(participant_ids=["alice", "ghost"], is_group=True)
        )
        message = await say(controller.messages, group.id, "ghost", "boo")
        await controller.reactions.add_reaction(ReactionInput(message_id=message.id, reaction_type="scream"), "ghost")

        view = await controller.messages.get_message(message.id, "alice")

        assert view.sender is None
        assert view.read_by[0].user_id == "ghost"
        assert view.read_by[0].username is None
        assert view.reactions[0].user is None
        assert view.is_read is False


class FailingConversationStore:
    async def get_conversation_by_id(self, conversation_id):
        raise ConnectionError("store unreachable")


class SlowConversationStore:
    async def get_conversation_by_id(self, conversation_id):
        await asyncio.sleep(1)


class TestFailureHandling:
    """Unexpected failures surface as generic operation failures"""

    @pytest.mark.asyncio
    async def test_io_error_becomes_operation_failed(self, messages, direct_conversation):
        messages.conversation_db = FailingConversationStore()

        with pytest.raises(OperationFailedError) as exc_info:
            await say(messages, direct_conversation.id, "alice", "hello")

        assert exc_info.value.operation == "send_message"
        assert exc_info.value.entity_id == direct_conversation.id
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_deadline_expiry_becomes_operation_failed(self, user_lookup):
        controller = MessagingController.in_memory(user_lookup, MessagingSettings(operation_timeout_seconds=0.01))
        controller.messages.conversation_db = SlowConversationStore()

        with pytest.raises(OperationFailedError):
            await controller.messages.get_conversation_messages("any", "alice")
