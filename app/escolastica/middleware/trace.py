import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

TRACE_HEADER = "X-Trace-ID"
_MAX_TRACE_ID_LENGTH = 128


def resolve_trace_id(header_value: str | None) -> str:
    candidate = (header_value or "").strip()
    if not candidate or len(candidate) > _MAX_TRACE_ID_LENGTH:
        return str(uuid.uuid4())
    return candidate


class TraceIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        trace_id = resolve_trace_id(request.headers.get(TRACE_HEADER))
        request.state.trace_id = trace_id
        response: Response = await call_next(request)
        response.headers[TRACE_HEADER] = trace_id
        return response
