from typing import List

from fastapi import APIRouter, Depends

from oms.api.auth import User
from oms.guardrails.audit_logger import audit_logger
from oms.guardrails.decorators import require_permission
from oms.guardrails.permissions import Permission
from oms.models.audit import AuditEvent

router = APIRouter(prefix="/api/audit", tags=["Audit"])

@router.get("/{entity_type}/{entity_id}", response_model=List[AuditEvent])
async def get_audit_trail(
    entity_type: str,
    entity_id: str,
    current_user: User = Depends(require_permission(Permission.VIEW_AUDIT))
):
    return await audit_logger.get_audit_trail(entity_type, entity_id)
