from sqlalchemy import select

from app.escolastica.core.config import settings
from app.escolastica.core.security import get_password_hash
from app.escolastica.db.models import Role, User, USER_TYPE_ADMIN


DEFAULT_ROLES = {
    "Coordinator": ("Branch coordinator; approves and requests student transfers", True),
    "Assistant": ("Branch assistant; read-only access to transfers", False),
}


def _get_or_create_roles(db):
    existing = {role.name: role for role in db.execute(select(Role)).scalars().all()}
    for name, (description, can_manage_transfers) in DEFAULT_ROLES.items():
        if name in existing:
            continue
        role = Role(
            name=name,
            description=description,
            can_manage_transfers=can_manage_transfers,
            is_system=True,
        )
        db.add(role)
        existing[name] = role
    return existing


def _get_or_create_superadmin(db):
    user = db.execute(select(User).where(User.username == settings.SUPERADMIN_USERNAME)).scalars().first()
    if user:
        return user
    user = User(
        username=settings.SUPERADMIN_USERNAME,
        email=settings.SUPERADMIN_EMAIL,
        full_name=settings.SUPERADMIN_FULL_NAME,
        hashed_password=get_password_hash(settings.SUPERADMIN_PASSWORD),
        user_type=USER_TYPE_ADMIN,
        is_active=True,
    )
    db.add(user)
    return user


def run_seed(db):
    _get_or_create_roles(db)
    db.flush()
    _get_or_create_superadmin(db)
    db.commit()
