from collections.abc import Iterable

from messaging_toolkit.conversation_database.data_models.user import MinimalUser, UserLookup


class InMemoryUserLookup(UserLookup):
    def __init__(self, users: Iterable[MinimalUser] = ()) -> None:
        self.users: dict[str, MinimalUser] = {user.id: user for user in users}

    def add_user(self, user: MinimalUser) -> MinimalUser:
        self.users[user.id] = user
        return user

    async def get_minimal_user(self, user_id: str) -> MinimalUser | None:
        return self.users.get(user_id)
