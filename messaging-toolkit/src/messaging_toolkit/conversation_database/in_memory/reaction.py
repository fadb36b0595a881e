from messaging_toolkit.conversation_database.data_models.reaction import Reaction, ReactionDatabase


class InMemoryReactionDatabase(ReactionDatabase):
    """Reactions keyed by (message id, user id), which rules out duplicates per user."""

    def __init__(self) -> None:
        self.reactions: dict[tuple[str, str], Reaction] = {}

    async def insert_reaction(self, reaction: Reaction) -> Reaction:
        self.reactions[(reaction.message_id, reaction.user_id)] = reaction.model_copy()
        return reaction.model_copy()

    async def get_reactions_by_message_id(self, message_id: str) -> list[Reaction]:
        found = [r for (mid, _), r in self.reactions.items() if mid == message_id]
        return [r.model_copy() for r in sorted(found, key=lambda r: r.create_timestamp)]

    async def get_user_reaction(self, message_id: str, user_id: str) -> Reaction | None:
        reaction = self.reactions.get((message_id, user_id))
        return reaction.model_copy() if reaction else None

    async def update_reaction(self, message_id: str, user_id: str, reaction_type: str) -> None:
        reaction = self.reactions.get((message_id, user_id))
        if reaction is not None:
            reaction.reaction_type = reaction_type

    async def remove_reaction(self, message_id: str, user_id: str) -> bool:
        return self.reactions.pop((message_id, user_id), None) is not None
