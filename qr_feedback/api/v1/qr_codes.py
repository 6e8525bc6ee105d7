"""QR code administration - generate, list, edit, delete, render."""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel

from qr_feedback.bootstrap import Services
from qr_feedback.config import Settings
from qr_feedback.domain.models import CustomQuestion, QRCodeRecord, QRCodeUpdate
from qr_feedback.domain.validation import QRCodeStatus, qr_code_status
from qr_feedback.infrastructure.qr_image import feedback_url, render_qr_png
from qr_feedback.services.sync import SyncStatus

from .deps import get_services, get_settings

logger = logging.getLogger(__name__)

router = APIRouter()


class QRCodeCreateRequest(BaseModel):
    context: str
    expiry_hours: Optional[float] = None
    max_scans: Optional[int] = None
    custom_questions: Optional[List[CustomQuestion]] = None


class QRCodeRead(QRCodeRecord):
    status: QRCodeStatus
    is_valid: bool
    feedback_url: str


class SyncResponse(BaseModel):
    status: SyncStatus
    pending: int
    success: Optional[bool] = None


def _read(record: QRCodeRecord, services: Services, cfg: Settings) -> QRCodeRead:
    status = qr_code_status(record, services.qr_codes.clock())
    return QRCodeRead(
        **record.model_dump(),
        status=status,
        is_valid=status == QRCodeStatus.ACTIVE,
        feedback_url=feedback_url(cfg.public_base_url, record.id),
    )


@router.post("", response_model=QRCodeRead, status_code=201)
async def create_qr_code(
    req: QRCodeCreateRequest,
    services: Services = Depends(get_services),
    cfg: Settings = Depends(get_settings),
):
    record = services.qr_codes.generate(
        req.context,
        expiry_hours=req.expiry_hours,
        max_scans=req.max_scans,
        custom_questions=req.custom_questions,
    )
    await services.qr_codes.store(record)
    logger.info(f"QR code {record.id} created for '{record.context}'")
    return _read(record, services, cfg)


@router.get("", response_model=List[QRCodeRead])
async def list_qr_codes(
    services: Services = Depends(get_services),
    cfg: Settings = Depends(get_settings),
):
    records = await services.qr_codes.get_all()
    return [_read(r, services, cfg) for r in records]


@router.get("/sync/status", response_model=SyncResponse)
async def sync_status(services: Services = Depends(get_services)):
    return SyncResponse(
        status=services.sync.get_synchronization_status(),
        pending=len(services.sync.pending),
    )


@router.post("/sync", response_model=SyncResponse)
async def force_sync(services: Services = Depends(get_services)):
    success = await services.sync.force_synchronization()
    return SyncResponse(
        status=services.sync.get_synchronization_status(),
        pending=len(services.sync.pending),
        success=success,
    )


@router.get("/{qr_code_id}", response_model=QRCodeRead)
async def get_qr_code(
    qr_code_id: str,
    refresh: bool = False,
    services: Services = Depends(get_services),
    cfg: Settings = Depends(get_settings),
):
    record = await services.qr_codes.get(qr_code_id, refresh=refresh)
    if not record:
        raise HTTPException(status_code=404, detail="QR code not found")
    return _read(record, services, cfg)


@router.patch("/{qr_code_id}", response_model=QRCodeRead)
async def update_qr_code(
    qr_code_id: str,
    req: QRCodeUpdate,
    services: Services = Depends(get_services),
    cfg: Settings = Depends(get_settings),
):
    record = await services.qr_codes.update(qr_code_id, req)
    if not record:
        raise HTTPException(status_code=404, detail="QR code not found")
    return _read(record, services, cfg)


@router.delete("/{qr_code_id}")
async def delete_qr_code(qr_code_id: str, services: Services = Depends(get_services)):
    if await services.qr_codes.get(qr_code_id, refresh=True) is None:
        raise HTTPException(status_code=404, detail="QR code not found")

    if not await services.qr_codes.delete(qr_code_id):
        raise HTTPException(
            status_code=503,
            detail="QR code could not be deleted from the remote store, please retry",
        )
    return {"deleted": True, "id": qr_code_id}


@router.get("/{qr_code_id}/image")
async def qr_code_image(
    qr_code_id: str,
    services: Services = Depends(get_services),
    cfg: Settings = Depends(get_settings),
):
    record = await services.qr_codes.get(qr_code_id)
    if not record:
        raise HTTPException(status_code=404, detail="QR code not found")
    png = render_qr_png(feedback_url(cfg.public_base_url, record.id))
    return Response(content=png, media_type="image/png")
