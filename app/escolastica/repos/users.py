from sqlalchemy import select

from app.escolastica.db.models import User


class UserRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, user_id):
        return self.db.get(User, user_id)

    def get_by_username_or_email(self, identifier: str):
        stmt = select(User).where((User.username == identifier) | (User.email == identifier))
        return self.db.execute(stmt).scalars().first()
