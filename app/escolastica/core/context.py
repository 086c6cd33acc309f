from dataclasses import dataclass

from app.escolastica.db.models import USER_TYPE_ADMIN


@dataclass(frozen=True)
class Actor:
    """The authenticated user a request acts on behalf of."""

    id: str
    user_type: str
    username: str

    @property
    def is_admin(self) -> bool:
        return (self.user_type or "").lower() == USER_TYPE_ADMIN


def actor_from_user(user) -> Actor:
    return Actor(id=str(user.id), user_type=user.user_type, username=user.username)
