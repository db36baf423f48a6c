from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from oms.api.auth import User
from oms.guardrails.decorators import ensure_vendor_scope, require_permission
from oms.guardrails.permissions import Permission, permission_checker
from oms.models.enums import DeliveryVerified
from oms.models.payment import PaymentRecord
from oms.services.payment import payment_service

router = APIRouter(prefix="/api/payments", tags=["Payments"])

class ReleaseRequest(BaseModel):
    payment_id: str
    reference_id: str

class BulkReleaseRequest(BaseModel):
    entries: List[ReleaseRequest]

class EditAmountRequest(BaseModel):
    payment_id: str
    new_amount: float
    reason: str
    new_delivery_status: Optional[DeliveryVerified] = None

@router.get("/pending", response_model=List[PaymentRecord])
async def list_pending_payments(
    vendor_id: Optional[str] = None,
    current_user: User = Depends(require_permission(Permission.VIEW_PAYMENT))
):
    if current_user.role == "vendor":
        vendor_id = current_user.vendor_id
    return await payment_service.list_pending(vendor_id)

@router.get("/{payment_id}", response_model=PaymentRecord)
async def get_payment(
    payment_id: str,
    current_user: User = Depends(require_permission(Permission.VIEW_PAYMENT))
):
    payment = await payment_service.get(payment_id)
    ensure_vendor_scope(current_user, payment.vendor_id)
    return payment

@router.post("/release", response_model=PaymentRecord)
async def release_payment(
    request: ReleaseRequest,
    current_user: User = Depends(require_permission(Permission.RELEASE_PAYMENT))
):
    return await payment_service.release(
        request.payment_id, request.reference_id, actor=permission_checker.actor_for(current_user)
    )

@router.post("/bulk-release")
async def bulk_release(
    request: BulkReleaseRequest,
    current_user: User = Depends(require_permission(Permission.RELEASE_PAYMENT))
):
    return await payment_service.bulk_release(
        [entry.model_dump() for entry in request.entries],
        actor=permission_checker.actor_for(current_user)
    )

@router.post("/edit-amount", response_model=PaymentRecord)
async def edit_amount(
    request: EditAmountRequest,
    current_user: User = Depends(require_permission(Permission.EDIT_PAYMENT_AMOUNT))
):
    return await payment_service.edit_amount(
        request.payment_id,
        request.new_amount,
        request.reason,
        new_delivery_status=request.new_delivery_status,
        actor=permission_checker.actor_for(current_user)
    )
