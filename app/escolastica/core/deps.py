from fastapi import Depends, Request
from jose import JWTError
from pydantic import ValidationError

from app.escolastica.core.context import Actor, actor_from_user
from app.escolastica.core.error_catalog import AppError, ErrorCatalog
from app.escolastica.core.security import TokenData, decode_token, oauth2_scheme
from app.escolastica.db.session import get_db
from app.escolastica.repos.users import UserRepository


def get_current_token_data(token: str = Depends(oauth2_scheme)) -> TokenData:
    try:
        payload = decode_token(token)
        return TokenData(**payload)
    except (JWTError, ValidationError, TypeError) as exc:
        raise AppError(ErrorCatalog.INVALID_TOKEN) from exc


def get_current_user(token_data: TokenData = Depends(get_current_token_data), db=Depends(get_db)):
    repo = UserRepository(db)
    user = repo.get_by_id(token_data.sub)
    if user is None:
        raise AppError(ErrorCatalog.INVALID_TOKEN)
    if not user.is_active:
        raise AppError(ErrorCatalog.USER_INACTIVE)
    return user


def get_current_actor(request: Request, user=Depends(get_current_user)) -> Actor:
    actor = actor_from_user(user)
    request.state.user_id = actor.id
    return actor


__all__ = [
    "get_current_token_data",
    "get_current_user",
    "get_current_actor",
]
