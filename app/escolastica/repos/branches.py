from app.escolastica.db.models import Branch


class BranchRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, branch_id) -> Branch | None:
        return self.db.get(Branch, branch_id)
