"""Feedback API - public scan/submit endpoints and the staff dashboard.

The public endpoints answer with a distinct status and message per reason a
QR code cannot take feedback, so the scan page never shows a generic error.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from qr_feedback.bootstrap import Services
from qr_feedback.domain.models import CustomQuestion, FeedbackCreate, FeedbackRecord, FeedbackStats, Sentiment
from qr_feedback.domain.validation import ScanStatus

from .deps import get_services

router = APIRouter()

SCAN_HTTP_STATUS = {
    ScanStatus.NOT_FOUND: 404,
    ScanStatus.EXPIRED: 410,
    ScanStatus.EXHAUSTED: 410,
    ScanStatus.DEACTIVATED: 410,
    ScanStatus.NETWORK_ERROR: 503,
}

SCAN_MESSAGES = {
    ScanStatus.ACTIVE: "QR code is accepting feedback.",
    ScanStatus.NOT_FOUND: "This QR code does not exist or was deleted.",
    ScanStatus.EXPIRED: "This QR code has expired.",
    ScanStatus.EXHAUSTED: "This QR code has reached its scan limit.",
    ScanStatus.DEACTIVATED: "This QR code has been deactivated.",
    ScanStatus.NETWORK_ERROR: "Could not reach the server. Please check your connection and try again.",
}


def scan_rejection(status: ScanStatus) -> HTTPException:
    return HTTPException(
        status_code=SCAN_HTTP_STATUS[status],
        detail={"status": status.value, "message": SCAN_MESSAGES[status]},
    )


class ScanResponse(BaseModel):
    status: ScanStatus
    message: str
    context: str
    custom_questions: Optional[List[CustomQuestion]] = None


@router.get("/qr/{qr_code_id}", response_model=ScanResponse)
async def check_qr_code(qr_code_id: str, services: Services = Depends(get_services)):
    check = await services.feedback.check(qr_code_id)
    if not check.accepted:
        raise scan_rejection(check.status)
    return ScanResponse(
        status=check.status,
        message=SCAN_MESSAGES[check.status],
        context=check.record.context,
        custom_questions=check.record.custom_questions,
    )


@router.post("/qr/{qr_code_id}", response_model=FeedbackRecord, status_code=201)
async def submit_feedback(
    qr_code_id: str,
    req: FeedbackCreate,
    services: Services = Depends(get_services),
):
    # ScanRejected is turned into the matching status by the app's exception handler
    return await services.feedback.submit(qr_code_id, req)


@router.get("/stats", response_model=FeedbackStats)
async def feedback_stats(services: Services = Depends(get_services)):
    return await services.feedback.stats()


@router.get("", response_model=List[FeedbackRecord])
async def list_feedback(
    qr_code_id: Optional[str] = None,
    sentiment: Optional[Sentiment] = None,
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
    services: Services = Depends(get_services),
):
    return await services.feedback.list_feedback(qr_code_id=qr_code_id, sentiment=sentiment, limit=limit)


@router.get("/{feedback_id}", response_model=FeedbackRecord)
async def get_feedback(feedback_id: str, services: Services = Depends(get_services)):
    record = await services.feedback.get(feedback_id)
    if not record:
        raise HTTPException(status_code=404, detail="Feedback not found")
    return record


@router.delete("/{feedback_id}")
async def delete_feedback(feedback_id: str, services: Services = Depends(get_services)):
    if not await services.feedback.delete(feedback_id):
        raise HTTPException(status_code=404, detail="Feedback not found")
    return {"deleted": 1}


@router.delete("")
async def delete_feedback_bulk(
    qr_code_id: Optional[str] = None,
    services: Services = Depends(get_services),
):
    if qr_code_id:
        deleted = await services.feedback.delete_by_qr_code(qr_code_id)
    else:
        deleted = await services.feedback.delete_all()
    return {"deleted": deleted}
