from sqlalchemy import select

from app.escolastica.db.models import Branch, Role, UserBranchRole


class UserBranchRoleRepository:
    def __init__(self, db):
        self.db = db

    def get_role_for_branch(self, user_id, branch_id) -> Role | None:
        stmt = (
            select(Role)
            .join(UserBranchRole, UserBranchRole.role_id == Role.id)
            .where(UserBranchRole.user_id == user_id, UserBranchRole.branch_id == branch_id)
            .limit(1)
        )
        return self.db.execute(stmt).scalars().first()

    def list_transfer_manager_branches(self, user_id) -> list[Branch]:
        stmt = (
            select(Branch)
            .join(UserBranchRole, UserBranchRole.branch_id == Branch.id)
            .join(Role, UserBranchRole.role_id == Role.id)
            .where(UserBranchRole.user_id == user_id, Role.can_manage_transfers.is_(True))
            .order_by(Branch.name)
        )
        return self.db.execute(stmt).scalars().all()
