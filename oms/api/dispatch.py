from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from oms.api.auth import User
from oms.guardrails.decorators import ensure_vendor_scope, require_permission
from oms.guardrails.permissions import Permission, permission_checker
from oms.models.dispatch import Dispatch, LogisticsDetails
from oms.services.dispatch import dispatch_service

router = APIRouter(prefix="/api/dispatch", tags=["Dispatch"])

class CreateDispatchRequest(BaseModel):
    po_line_id: str
    dispatched_qty: int
    awb_number: Optional[str] = None
    logistics_partner: Optional[str] = None
    dispatch_date: Optional[datetime] = None
    estimated_delivery_date: Optional[datetime] = None
    remarks: Optional[str] = None

@router.post("", response_model=Dispatch, status_code=201)
async def create_dispatch(
    request: CreateDispatchRequest,
    current_user: User = Depends(require_permission(Permission.CREATE_DISPATCH))
):
    po = await dispatch_service.po_for_line(request.po_line_id)
    ensure_vendor_scope(current_user, po.vendor_id)

    logistics = LogisticsDetails(**request.model_dump(exclude={"po_line_id", "dispatched_qty"}))
    return await dispatch_service.create_dispatch(
        request.po_line_id,
        request.dispatched_qty,
        logistics,
        actor=permission_checker.actor_for(current_user)
    )

@router.get("/{dispatch_id}", response_model=Dispatch)
async def get_dispatch(
    dispatch_id: str,
    current_user: User = Depends(require_permission(Permission.VIEW_ORDER))
):
    dispatch = await dispatch_service.get(dispatch_id)
    ensure_vendor_scope(current_user, dispatch.vendor_id)
    return dispatch
