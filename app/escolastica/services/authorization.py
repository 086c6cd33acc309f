from __future__ import annotations

import logging
from typing import Callable

from app.escolastica.core.context import Actor
from app.escolastica.core.error_catalog import AppError, ErrorCatalog
from app.escolastica.core.logging import log_json
from app.escolastica.core.metrics import metrics
from app.escolastica.repos.roles import UserBranchRoleRepository

logger = logging.getLogger(__name__)

RoleLookup = Callable[[str, str], object | None]


def can_manage_transfers(actor: Actor, branch_id, role_lookup: RoleLookup) -> bool:
    """Admins always may; everyone else needs a role on `branch_id` flagged can_manage_transfers."""
    if actor is None or not actor.id or branch_id is None:
        return False
    if actor.is_admin:
        return True
    role = role_lookup(actor.id, str(branch_id))
    if role is None:
        return False
    return bool(role.can_manage_transfers)


class AuthorizationGate:
    def __init__(self, db):
        self.repo = UserBranchRoleRepository(db)

    def can_manage_transfers(self, actor: Actor, branch_id) -> bool:
        return can_manage_transfers(actor, branch_id, self.repo.get_role_for_branch)

    def require_transfer_manager(self, actor: Actor, branch_id, *, action: str) -> None:
        if self.can_manage_transfers(actor, branch_id):
            return
        metrics.increment_permission_denied()
        log_json(
            logger,
            {
                "event": "transfer.permission_denied",
                "action": action,
                "user_id": actor.id,
                "branch_id": str(branch_id),
            },
            level=logging.WARNING,
        )
        raise AppError(ErrorCatalog.PERMISSION_DENIED)

    def managed_branches(self, actor: Actor):
        return self.repo.list_transfer_manager_branches(actor.id)
