# driftwatch/api/routes/audit.py
import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from driftwatch.core.config import settings
from driftwatch.core.exceptions import EmptyExportError, PersistenceError, ValidationError
from driftwatch.schemas.audit import (
    AuditEventRead,
    AuditHealthResponse,
    AuditRunResponse,
    ClearHistoryResponse,
)
from driftwatch.services.audit_engine import AuditEngine
from driftwatch.services.audit_store import AuditStore
from driftwatch.services.live_state import LiveStateStore
from driftwatch.services.notification_service import SlackNotifier
from driftwatch.services.policy_loader import load_policies

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/audit", tags=["Audit"])


def get_audit_store() -> AuditStore:
    """Dependency for the audit history store"""
    return AuditStore()


def get_live_state_store() -> LiveStateStore:
    return LiveStateStore(settings.LIVE_STATE_PATH)


def get_policies_dir() -> str:
    return settings.POLICIES_DIR


def get_notifier() -> Optional[SlackNotifier]:
    return SlackNotifier.from_settings()


@router.post("/run", response_model=AuditRunResponse)
async def run_audit(
    fix: bool = False,
    strict: Optional[bool] = None,
    store: AuditStore = Depends(get_audit_store),
    live_store: LiveStateStore = Depends(get_live_state_store),
    policies_dir: str = Depends(get_policies_dir),
    notifier: Optional[SlackNotifier] = Depends(get_notifier)
):
    """Run an audit, optionally reconciling live state to match policy"""
    try:
        policies = await asyncio.to_thread(load_policies, policies_dir)
        live_state = await asyncio.to_thread(live_store.load)
        engine = AuditEngine(
            store,
            strict=settings.STRICT_MATCHING if strict is None else strict,
            notifier=notifier
        )
        report = await engine.run(
            policies,
            live_state,
            fix=fix,
            persist=(lambda state: asyncio.to_thread(live_store.save, state)) if fix else None
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)
    except PersistenceError as e:
        logger.error(f"Audit run aborted: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return AuditRunResponse.from_report(report)


@router.get("/history", response_model=List[AuditEventRead])
async def get_audit_history(
    limit: Optional[int] = Query(default=None, ge=0),
    store: AuditStore = Depends(get_audit_store)
):
    """Get audit events, most recent first"""
    try:
        events = await store.query(limit=limit)
    except PersistenceError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return [AuditEventRead(**event.to_dict()) for event in events]


@router.delete("/history", response_model=ClearHistoryResponse)
async def clear_audit_history(store: AuditStore = Depends(get_audit_store)):
    """Delete the whole audit history"""
    try:
        deleted = await store.clear()
    except PersistenceError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return ClearHistoryResponse(deleted=deleted)


@router.get("/export")
async def export_audit_history(store: AuditStore = Depends(get_audit_store)):
    """Export the audit history as CSV"""
    try:
        content = await store.export()
    except EmptyExportError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="audit_export.csv"'}
    )


@router.get("/health", response_model=AuditHealthResponse)
async def get_audit_health(store: AuditStore = Depends(get_audit_store)):
    """Get health status of the audit history store"""
    try:
        total = await store.count()
    except PersistenceError as e:
        return AuditHealthResponse(status="down", details=str(e))
    return AuditHealthResponse(status="ok", total_events=total)
