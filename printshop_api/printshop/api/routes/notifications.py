from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query, status

from printshop.core.deps import get_notification_engine
from printshop.jobs.scheduler import get_job_status
from printshop.schemas.notifications import (
    NotificationLogRead,
    NotificationPassSummary,
    NotificationRuleCreate,
    NotificationRuleRead,
)
from printshop.services.notifications import NotificationRuleEngine

router = APIRouter(prefix="/notifications", tags=["Notifications"])


# PUBLIC_INTERFACE
@router.get("/rules", response_model=List[NotificationRuleRead], summary="List notification rules")
async def list_rules(engine: NotificationRuleEngine = Depends(get_notification_engine)) -> List[NotificationRuleRead]:
    return [NotificationRuleRead.model_validate(r) for r in await engine.list_rules()]


# PUBLIC_INTERFACE
@router.post(
    "/rules",
    response_model=NotificationRuleRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a notification rule",
)
async def create_rule(
    payload: NotificationRuleCreate,
    engine: NotificationRuleEngine = Depends(get_notification_engine),
) -> NotificationRuleRead:
    return NotificationRuleRead.model_validate(await engine.create_rule(payload))


# PUBLIC_INTERFACE
@router.get("/logs", response_model=List[NotificationLogRead], summary="Recent notification attempts")
async def list_logs(
    engine: NotificationRuleEngine = Depends(get_notification_engine),
    limit: int = Query(100, ge=1, le=1000),
) -> List[NotificationLogRead]:
    return [NotificationLogRead.model_validate(r) for r in await engine.list_logs(limit)]


# PUBLIC_INTERFACE
@router.post("/check", response_model=NotificationPassSummary, summary="Run a notification pass now")
async def run_check(engine: NotificationRuleEngine = Depends(get_notification_engine)) -> NotificationPassSummary:
    """Runs the same pass the scheduler runs periodically."""
    return await engine.check_order_notifications()


# PUBLIC_INTERFACE
@router.get("/jobs", response_model=List[Dict[str, Any]], summary="Scheduled job status")
def list_jobs() -> List[Dict[str, Any]]:
    return get_job_status()
