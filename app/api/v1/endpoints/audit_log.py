"""Audit log API: query and export audit entries, run the retention sweep.

/me, /user/{user_id} (own id) and /session/{session_id} are open to any
authenticated user; everything else needs an audit admin role. Every route
is itself audited.
"""

from datetime import datetime, timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from app.api.v1.dependencies.audit import audit_log, require_audit_service
from app.api.v1.dependencies.auth import (
    get_current_user,
    is_audit_admin,
    require_audit_admin,
)
from app.application.dtos.audit_log import AuditLogFilters, QueryOptions
from app.application.services.audit_log_service import AuditLogService
from app.core.config import get_settings
from app.core.limiter import limit_cleanup, limit_export
from app.domain.exceptions import AuthorizationException, ValidationException
from app.middleware.audit_log import AuditOptions
from app.schemas.audit_log import (
    AuditLogEntryResponse,
    AuditLogListResponse,
    AuditLogPageResponse,
    AuditStatsResponse,
    CleanupRequest,
    CleanupResponse,
    ExportResponse,
)
from app.shared.context import AuthenticatedUser
from app.shared.enums import AuditCategory, TargetType
from app.shared.utils.datetime import utc_now

router = APIRouter()

Service = Annotated[AuditLogService, Depends(require_audit_service)]
CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
AdminUser = Annotated[AuthenticatedUser, Depends(require_audit_admin)]

_SECURITY_VIEW = AuditOptions(category=AuditCategory.SECURITY.value)


def _audited(action: str, options: AuditOptions | None = None) -> list:
    return [Depends(audit_log(action, TargetType.OTHER.value, options=options))]


def _list_response(logs: list) -> AuditLogListResponse:
    return AuditLogListResponse(
        data=[AuditLogEntryResponse.model_validate(e) for e in logs],
        total=len(logs),
    )


def _page_response(page) -> AuditLogPageResponse:
    return AuditLogPageResponse(
        logs=[AuditLogEntryResponse.model_validate(e) for e in page.logs],
        total=page.total,
        page=page.page,
        total_pages=page.total_pages,
    )


def _query_options(page: int, limit: int, sort_by: str, sort_order: str) -> QueryOptions:
    try:
        return QueryOptions(page=page, limit=limit, sort_by=sort_by, sort_order=sort_order.upper())
    except ValueError as e:
        raise ValidationException(str(e)) from e


@router.get(
    "",
    response_model=AuditLogPageResponse,
    dependencies=_audited("VIEW_ALL_LOGS"),
)
async def query_audit_logs(
    service: Service,
    _: AdminUser,
    user_id: str | None = None,
    user_email: str | None = Query(None, description="Case-insensitive substring"),
    action: str | None = None,
    target_type: str | None = None,
    target_id: str | None = None,
    status: str | None = None,
    severity: str | None = None,
    category: str | None = None,
    organization_id: str | None = None,
    ip_address: str | None = None,
    correlation_id: str | None = None,
    start_date: datetime | None = Query(None, description="From (inclusive) ISO8601"),
    end_date: datetime | None = Query(None, description="To (inclusive) ISO8601"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    sort_by: str = "created_at",
    sort_order: str = "DESC",
) -> AuditLogPageResponse:
    """Query audit log entries with filters (paginated)."""
    filters = AuditLogFilters(
        user_id=user_id,
        user_email=user_email,
        action=action,
        target_type=target_type,
        target_id=target_id,
        status=status,
        severity=severity,
        category=category,
        organization_id=organization_id,
        ip_address=ip_address,
        correlation_id=correlation_id,
        start_date=start_date,
        end_date=end_date,
    )
    result = await service.query(filters, _query_options(page, limit, sort_by, sort_order))
    return _page_response(result)


@router.get("/me", response_model=AuditLogListResponse, dependencies=_audited("VIEW_MY_ACTIVITY"))
async def get_my_activity(
    service: Service,
    user: CurrentUser,
    limit: int = Query(50, ge=1, le=500),
) -> AuditLogListResponse:
    """The caller's own activity, newest first."""
    return _list_response(await service.get_user_activity(user.user_id, limit))


@router.get(
    "/user/{user_id}",
    response_model=AuditLogListResponse,
    dependencies=_audited("VIEW_USER_ACTIVITY"),
)
async def get_user_activity(
    user_id: str,
    service: Service,
    user: CurrentUser,
    limit: int = Query(50, ge=1, le=500),
) -> AuditLogListResponse:
    """A user's activity. Users may only read their own unless audit admin."""
    if user.user_id != user_id and not is_audit_admin(user):
        raise AuthorizationException("audit_log", "read_other_user")
    return _list_response(await service.get_user_activity(user_id, limit))


@router.get(
    "/recent",
    response_model=AuditLogListResponse,
    dependencies=_audited("VIEW_RECENT_LOGS"),
)
async def get_recent_activity(
    service: Service,
    _: AdminUser,
    limit: int = Query(100, ge=1, le=500),
) -> AuditLogListResponse:
    """Newest entries across all users."""
    return _list_response(await service.get_recent_activity(limit))


@router.get(
    "/security",
    response_model=AuditLogListResponse,
    dependencies=_audited("VIEW_SECURITY_LOGS", _SECURITY_VIEW),
)
async def get_security_events(
    service: Service,
    _: AdminUser,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    limit: int = Query(100, ge=1, le=500),
) -> AuditLogListResponse:
    """SECURITY-category entries; defaults to the last 7 days."""
    end = end_date or utc_now()
    start = start_date or end - timedelta(days=7)
    return _list_response(await service.get_security_events(start, end, limit))


@router.get(
    "/failed",
    response_model=AuditLogListResponse,
    dependencies=_audited("VIEW_FAILED_LOGS", _SECURITY_VIEW),
)
async def get_failed_actions(
    service: Service,
    _: AdminUser,
    limit: int = Query(100, ge=1, le=500),
) -> AuditLogListResponse:
    """Entries with FAILED or ERROR status."""
    return _list_response(await service.get_failed_actions(limit))


@router.get(
    "/suspicious",
    response_model=AuditLogPageResponse,
    dependencies=_audited("VIEW_SUSPICIOUS_LOGS", _SECURITY_VIEW),
)
async def get_suspicious_activity(
    service: Service,
    _: AdminUser,
    hours: int | None = Query(None, ge=1, le=24 * 90),
) -> AuditLogPageResponse:
    """Failed logins and flagged requests of the last `hours` hours."""
    window = hours or get_settings().audit_suspicious_window_hours
    return _page_response(await service.get_suspicious_activity(window))


@router.get("/stats", response_model=AuditStatsResponse, dependencies=_audited("VIEW_LOG_STATS"))
async def get_statistics(
    service: Service,
    _: AdminUser,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> AuditStatsResponse:
    """Aggregate counts; defaults to the last 30 days."""
    end = end_date or utc_now()
    start = start_date or end - timedelta(days=30)
    stats = await service.get_statistics(start, end)
    response = AuditStatsResponse.model_validate(stats)
    return response.model_copy(update={"start_date": start, "end_date": end})


@router.get(
    "/correlation/{correlation_id}",
    response_model=AuditLogPageResponse,
    dependencies=_audited("VIEW_CORRELATED_LOGS"),
)
async def get_correlated_actions(
    correlation_id: str,
    service: Service,
    _: AdminUser,
) -> AuditLogPageResponse:
    """Entries sharing one correlation id, oldest first."""
    return _page_response(await service.get_correlated_actions(correlation_id))


@router.get(
    "/session/{session_id}",
    response_model=AuditLogPageResponse,
    dependencies=_audited("VIEW_SESSION_LOGS"),
)
async def track_session(
    session_id: str,
    service: Service,
    user: CurrentUser,
) -> AuditLogPageResponse:
    """Entries of one session, oldest first. Non-admins only see their own."""
    user_filter = None if is_audit_admin(user) else user.user_id
    return _page_response(await service.track_session(session_id, user_filter))


@router.get("/export", dependencies=_audited("EXPORT_LOGS", AuditOptions(include_request_body=False)))
@limit_export
async def export_logs(
    request: Request,
    service: Service,
    _: AdminUser,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    user_id: str | None = None,
    action: str | None = None,
    organization_id: str | None = None,
) -> JSONResponse:
    """Download matching entries as a JSON attachment (capped at the export limit)."""
    filters = AuditLogFilters(
        start_date=start_date,
        end_date=end_date,
        user_id=user_id,
        action=action,
        organization_id=organization_id,
    )
    logs = await service.export_logs(filters)
    exported_at = utc_now()
    body = ExportResponse(
        exported_at=exported_at,
        total=len(logs),
        data=[AuditLogEntryResponse.model_validate(e) for e in logs],
    )
    filename = f"audit-logs-{int(exported_at.timestamp() * 1000)}.json"
    return JSONResponse(
        content=body.model_dump(mode="json"),
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post(
    "/cleanup",
    response_model=CleanupResponse,
    dependencies=_audited("CLEANUP_LOGS", AuditOptions(log_all=True)),
)
@limit_cleanup
async def cleanup_logs(
    request: Request,
    service: Service,
    _: AdminUser,
    body: CleanupRequest | None = None,
) -> CleanupResponse:
    """Delete entries older than retention_days. Failures surface as errors."""
    retention_days = body.retention_days if body else get_settings().audit_retention_days
    result = await service.cleanup(retention_days)
    return CleanupResponse(deleted=result["deleted"], retention_days=retention_days)
