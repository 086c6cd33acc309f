import logging

from fastapi import APIRouter, Depends, Request

from app.escolastica.core.context import actor_from_user
from app.escolastica.core.deps import get_current_user
from app.escolastica.core.logging import log_json
from app.escolastica.db.session import get_db
from app.escolastica.schemas.auth import LoginRequest, ManagedBranch, MeResponse, TokenResponse
from app.escolastica.services.auth import AuthService
from app.escolastica.services.authorization import AuthorizationGate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=TokenResponse, summary="Login (JSON)")
def login(request: Request, payload: LoginRequest, db=Depends(get_db)):
    trace_id = getattr(request.state, "trace_id", "")
    user, token = AuthService(db).login(payload.username, payload.password)
    log_json(logger, {"event": "auth.login", "user_id": str(user.id), "trace_id": trace_id})
    return TokenResponse(access_token=token, trace_id=trace_id)


@router.get("/me", response_model=MeResponse)
def me(request: Request, current_user=Depends(get_current_user), db=Depends(get_db)):
    actor = actor_from_user(current_user)
    request.state.user_id = actor.id
    branches = AuthorizationGate(db).managed_branches(actor)
    return MeResponse(
        id=actor.id,
        username=current_user.username,
        email=current_user.email,
        full_name=current_user.full_name,
        user_type=current_user.user_type,
        is_active=current_user.is_active,
        managed_branches=[
            ManagedBranch(id=str(branch.id), name=branch.name, code=branch.code) for branch in branches
        ],
        trace_id=getattr(request.state, "trace_id", ""),
    )
