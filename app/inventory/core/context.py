from dataclasses import dataclass

from fastapi import Request

from app.inventory.core.config import settings
from app.inventory.core.error_catalog import AppError, ErrorCatalog


@dataclass(frozen=True)
class RequestContext:
    business_id: int | None
    user_id: int | None
    trace_id: str


def _parse_id(raw: str | None) -> int | None:
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def build_request_context(
    *,
    business_id: str | int | None,
    user_id: str | int | None,
    trace_id: str,
) -> RequestContext:
    return RequestContext(
        business_id=_parse_id(str(business_id)) if business_id is not None else None,
        user_id=_parse_id(str(user_id)) if user_id is not None else None,
        trace_id=trace_id,
    )


def get_request_context(request: Request) -> RequestContext:
    context = getattr(request.state, "context", None)
    if isinstance(context, RequestContext):
        return context
    return build_request_context(
        business_id=request.headers.get(settings.BUSINESS_HEADER),
        user_id=request.headers.get(settings.USER_HEADER),
        trace_id=getattr(request.state, "trace_id", ""),
    )


def require_business_context(request: Request) -> RequestContext:
    context = get_request_context(request)
    if context.business_id is None:
        raise AppError(
            ErrorCatalog.BUSINESS_SCOPE_REQUIRED,
            details={"header": settings.BUSINESS_HEADER},
        )
    return context
