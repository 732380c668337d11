import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.inventory.core.config import settings
from app.inventory.core.context import build_request_context

TRACE_HEADER = "X-Trace-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assigns a trace id and copies the caller's business/user headers onto request state.

    Authentication happens upstream; the headers are trusted as given.
    """

    async def dispatch(self, request: Request, call_next):
        trace_id = request.headers.get(TRACE_HEADER) or str(uuid.uuid4())
        context = build_request_context(
            business_id=request.headers.get(settings.BUSINESS_HEADER),
            user_id=request.headers.get(settings.USER_HEADER),
            trace_id=trace_id,
        )
        request.state.trace_id = trace_id
        request.state.business_id = context.business_id
        request.state.user_id = context.user_id
        request.state.context = context
        response: Response = await call_next(request)
        response.headers[TRACE_HEADER] = trace_id
        return response
