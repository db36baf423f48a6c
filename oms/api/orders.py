from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from oms.api.auth import User
from oms.guardrails.decorators import require_permission
from oms.guardrails.permissions import Permission, permission_checker
from oms.models.assignment import Assignment
from oms.models.order import Order
from oms.services.order import NewOrderItem, order_service
from oms.services.purchase_order import purchase_order_service

router = APIRouter(prefix="/api/orders", tags=["Orders"])

# Request Models
class CreateOrderRequest(BaseModel):
    order_number: str
    client_name: str
    items: List[NewOrderItem]

class AssignVendorRequest(BaseModel):
    vendor_id: str
    qty: Optional[int] = None
    supersedes: Optional[str] = None

@router.post("", response_model=Order, status_code=201)
async def create_order(
    request: CreateOrderRequest,
    current_user: User = Depends(require_permission(Permission.CREATE_ORDER))
):
    return await order_service.create_order(
        request.order_number,
        request.client_name,
        request.items,
        actor=permission_checker.actor_for(current_user)
    )

@router.get("/{order_id}")
async def get_order(
    order_id: str,
    current_user: User = Depends(require_permission(Permission.VIEW_ORDER))
):
    view = await order_service.get_order_view(order_id)
    view["order_status"] = await purchase_order_service.order_status(order_id)
    if current_user.role == "vendor":
        view["assignments"] = [a for a in view["assignments"] if a.vendor_id == current_user.vendor_id]
    return view

@router.get("/{order_id}/status")
async def get_order_status(
    order_id: str,
    current_user: User = Depends(require_permission(Permission.VIEW_ORDER))
):
    status = await purchase_order_service.order_status(order_id)
    return {"order_id": order_id, "order_status": status}

@router.post("/items/{order_item_id}/assign", response_model=Assignment, status_code=201)
async def assign_vendor(
    order_item_id: str,
    request: AssignVendorRequest,
    current_user: User = Depends(require_permission(Permission.ASSIGN_VENDOR))
):
    return await order_service.assign_vendor(
        order_item_id,
        request.vendor_id,
        qty=request.qty,
        supersedes=request.supersedes,
        actor=permission_checker.actor_for(current_user)
    )
