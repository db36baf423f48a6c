from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from oms.api.auth import User
from oms.guardrails.decorators import ensure_vendor_scope, require_permission
from oms.guardrails.permissions import Permission, permission_checker
from oms.models.grn import GoodsReceiptNote, ReceiptResult
from oms.services.grn import grn_service

router = APIRouter(prefix="/api/grn", tags=["GRN"])

class RecordGRNRequest(BaseModel):
    dispatch_id: str
    items: List[ReceiptResult]
    operator_remarks: Optional[str] = None

@router.post("", response_model=GoodsReceiptNote, status_code=201)
async def record_grn(
    request: RecordGRNRequest,
    current_user: User = Depends(require_permission(Permission.RECORD_GRN))
):
    return await grn_service.record_grn(
        request.dispatch_id,
        request.items,
        operator_remarks=request.operator_remarks,
        actor=permission_checker.actor_for(current_user)
    )

@router.get("/{grn_number}", response_model=GoodsReceiptNote)
async def get_grn(
    grn_number: str,
    current_user: User = Depends(require_permission(Permission.VIEW_ORDER))
):
    grn = await grn_service.get(grn_number)
    ensure_vendor_scope(current_user, grn.vendor_id)
    return grn
