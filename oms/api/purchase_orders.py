from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from oms.api.auth import User
from oms.guardrails.decorators import ensure_vendor_scope, require_permission
from oms.guardrails.permissions import Permission, permission_checker
from oms.models.purchase_order import PurchaseOrder
from oms.services.purchase_order import purchase_order_service

router = APIRouter(prefix="/api/po", tags=["Purchase Orders"])

class GeneratePORequest(BaseModel):
    order_id: str
    vendor_id: str

class BulkGeneratePORequest(BaseModel):
    order_ids: List[str]

@router.post("/generate", response_model=PurchaseOrder)
async def generate_po(
    request: GeneratePORequest,
    current_user: User = Depends(require_permission(Permission.GENERATE_PO))
):
    return await purchase_order_service.generate_po(
        request.order_id, request.vendor_id, actor=permission_checker.actor_for(current_user)
    )

@router.post("/bulk-generate")
async def bulk_generate_po(
    request: BulkGeneratePORequest,
    current_user: User = Depends(require_permission(Permission.GENERATE_PO))
):
    return await purchase_order_service.bulk_generate_po(
        request.order_ids, actor=permission_checker.actor_for(current_user)
    )

@router.get("/{po_number}", response_model=PurchaseOrder)
async def get_po(
    po_number: str,
    current_user: User = Depends(require_permission(Permission.VIEW_ORDER))
):
    po = await purchase_order_service.get(po_number)
    ensure_vendor_scope(current_user, po.vendor_id)
    return po
