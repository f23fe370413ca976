"""
Core Web Vitals endpoints.

`POST /cwv` is public: the collector runs for anonymous visitors and may
deliver through `navigator.sendBeacon`, which posts JSON as text/plain, so
the body is parsed by hand rather than through a typed body parameter.
"""
import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, Request, status
from fastapi.responses import JSONResponse
from kombu.exceptions import OperationalError
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from vitalsman.core.deps import CwvManager, CwvReader, get_db
from vitalsman.core.exceptions import NotFoundError
from vitalsman.schemas.common import PaginatedResponse
from vitalsman.schemas.cwv import (
    CwvAlertResponse,
    IngestError,
    IngestResponse,
    MetricsBatch,
    PageCwvStatus,
)
from vitalsman.services.cwv_alert_service import CwvAlertService
from vitalsman.services.cwv_service import CwvService
from vitalsman.services.notification_service import NotificationService
from vitalsman.tasks.cwv_tasks import send_cwv_alert_notifications

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cwv", tags=["Core Web Vitals"])


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=IngestError(message=message).model_dump(),
    )


@router.post(
    "",
    response_model=IngestResponse,
    responses={
        400: {"model": IngestError},
        500: {"model": IngestError},
    },
)
async def receive_metrics(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Receive a metrics batch from the frontend collector."""
    try:
        payload = await request.json()
    except ValueError:
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid JSON payload")

    if not isinstance(payload, dict) or not payload.get("metrics"):
        return _error(status.HTTP_400_BAD_REQUEST, "No metrics provided")

    try:
        batch = MetricsBatch.model_validate(payload)
    except ValidationError as e:
        logger.info(f"[CWV] Rejected batch with {e.error_count()} validation errors")
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid metrics payload")

    service = CwvService(db)
    try:
        result = await service.process_batch(batch)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception(f"[CWV] Processing failed: {type(e).__name__}")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Processing failed")

    if result.alerts and NotificationService().enabled:
        try:
            send_cwv_alert_notifications.delay([str(a.id) for a in result.alerts])
        except OperationalError as e:
            logger.error(f"[ALERTS] Could not queue notifications: {e}")

    return IngestResponse(processed=result.processed)


@router.get("/status/{page_id}", response_model=PageCwvStatus)
async def get_status(
    current_user: CwvReader,
    db: Annotated[AsyncSession, Depends(get_db)],
    page_id: int = Path(..., ge=0),
):
    """Get aggregated CWV status for a page."""
    service = CwvService(db)
    return await service.get_page_status(page_id)


@router.get("/alerts", response_model=PaginatedResponse[CwvAlertResponse])
async def list_alerts(
    current_user: CwvReader,
    db: Annotated[AsyncSession, Depends(get_db)],
    page_id: int | None = Query(default=None, ge=0),
    resolved: bool | None = None,
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=20, ge=1, le=100),
):
    """List CWV alerts, newest first."""
    service = CwvAlertService(db)
    alerts, total = await service.list_alerts(
        page_id=page_id,
        resolved=resolved,
        page=page,
        per_page=per_page,
    )

    return PaginatedResponse.create(
        items=[CwvAlertResponse.model_validate(a) for a in alerts],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post("/alerts/{alert_id}/resolve", response_model=CwvAlertResponse)
async def resolve_alert(
    alert_id: UUID,
    current_user: CwvManager,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Mark a CWV alert as resolved."""
    service = CwvAlertService(db)
    alert = await service.resolve_alert(alert_id)
    if alert is None:
        raise NotFoundError("Alert")

    await db.commit()
    return CwvAlertResponse.model_validate(alert)
