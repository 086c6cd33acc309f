from jose import JWTError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.escolastica.core.security import decode_token


class ActorContextMiddleware(BaseHTTPMiddleware):
    """Exposes the bearer token's subject on request.state for request logs only.

    Authorization never reads these values; endpoints resolve the actor through
    get_current_actor.
    """

    async def dispatch(self, request: Request, call_next):
        request.state.user_id = None
        request.state.user_type = None

        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.lower().startswith("bearer "):
            token = auth_header.split(" ", 1)[1]
            try:
                payload = decode_token(token)
            except JWTError:
                payload = {}
            request.state.user_id = payload.get("sub")
            request.state.user_type = payload.get("user_type")

        return await call_next(request)
