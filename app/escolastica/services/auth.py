from app.escolastica.core.error_catalog import AppError, ErrorCatalog
from app.escolastica.core.security import create_user_access_token, verify_password
from app.escolastica.repos.users import UserRepository


class AuthService:
    def __init__(self, db):
        self.repo = UserRepository(db)

    def login(self, identifier: str, password: str):
        user = self.repo.get_by_username_or_email(identifier)
        if user is None or not verify_password(password, user.hashed_password):
            raise AppError(ErrorCatalog.INVALID_CREDENTIALS)
        if not user.is_active:
            raise AppError(ErrorCatalog.USER_INACTIVE)
        return user, create_user_access_token(user)
