from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from oms.api.auth import User
from oms.guardrails.decorators import ensure_vendor_scope, require_permission
from oms.guardrails.permissions import Permission, permission_checker
from oms.models.assignment import Assignment
from oms.services.assignment import assignment_service

router = APIRouter(prefix="/api/assignments", tags=["Assignments"])

class ConfirmPartialRequest(BaseModel):
    available_qty: int

class DeclineRequest(BaseModel):
    reason: str
    remarks: Optional[str] = None

class NotAvailableRequest(BaseModel):
    remarks: Optional[str] = None

async def _own_assignment(assignment_id: str, user: User) -> Assignment:
    assignment = await assignment_service.get(assignment_id)
    ensure_vendor_scope(user, assignment.vendor_id)
    return assignment

@router.get("/{assignment_id}", response_model=Assignment)
async def get_assignment(
    assignment_id: str,
    current_user: User = Depends(require_permission(Permission.VIEW_ORDER))
):
    return await _own_assignment(assignment_id, current_user)

@router.post("/{assignment_id}/confirm-full", response_model=Assignment)
async def confirm_full(
    assignment_id: str,
    current_user: User = Depends(require_permission(Permission.DECIDE_ASSIGNMENT))
):
    await _own_assignment(assignment_id, current_user)
    return await assignment_service.confirm_full(assignment_id, actor=permission_checker.actor_for(current_user))

@router.post("/{assignment_id}/confirm-partial", response_model=Assignment)
async def confirm_partial(
    assignment_id: str,
    request: ConfirmPartialRequest,
    current_user: User = Depends(require_permission(Permission.DECIDE_ASSIGNMENT))
):
    await _own_assignment(assignment_id, current_user)
    return await assignment_service.confirm_partial(
        assignment_id, request.available_qty, actor=permission_checker.actor_for(current_user)
    )

@router.post("/{assignment_id}/decline", response_model=Assignment)
async def decline(
    assignment_id: str,
    request: DeclineRequest,
    current_user: User = Depends(require_permission(Permission.DECIDE_ASSIGNMENT))
):
    await _own_assignment(assignment_id, current_user)
    return await assignment_service.decline(
        assignment_id, request.reason, remarks=request.remarks,
        actor=permission_checker.actor_for(current_user)
    )

@router.post("/{assignment_id}/not-available", response_model=Assignment)
async def mark_not_available(
    assignment_id: str,
    request: NotAvailableRequest,
    current_user: User = Depends(require_permission(Permission.CLOSE_ASSIGNMENT))
):
    return await assignment_service.mark_not_available(
        assignment_id, remarks=request.remarks, actor=permission_checker.actor_for(current_user)
    )
