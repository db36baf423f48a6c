import logging
from typing import Any, Optional

from oms.database import db
from oms.guardrails.audit_logger import audit_logger, SYSTEM_ACTOR
from oms.models.assignment import Assignment
from oms.models.audit import Actor
from oms.models.base import AssignmentId
from oms.services.base import LifecycleService
from oms.tools.notification_tool import notification_tool

logger = logging.getLogger(__name__)

class AssignmentService(LifecycleService):
    """
    Vendor decisions on assignments. Every decision is terminal; the
    model refuses a second one and the version check refuses a racing one.
    """

    async def get(self, assignment_id: AssignmentId) -> Assignment:
        return await self._load(db.assignments, assignment_id, "Assignment")

    async def confirm_full(self, assignment_id: AssignmentId, actor: Actor = SYSTEM_ACTOR) -> Assignment:
        assignment = await self.get(assignment_id)
        updated = await self._transition(
            db.assignments, "Assignment", assignment,
            lambda a: a.confirm_full(actor.id)
        )
        await self._after_decision(assignment, updated, actor,
                                   f"Vendor confirmed all {updated.confirmed_qty} unit(s)")
        return updated

    async def confirm_partial(self, assignment_id: AssignmentId, available_qty: int, actor: Actor = SYSTEM_ACTOR) -> Assignment:
        assignment = await self.get(assignment_id)
        updated = await self._transition(
            db.assignments, "Assignment", assignment,
            lambda a: a.confirm_partial(available_qty, actor.id)
        )
        await self._after_decision(
            assignment, updated, actor,
            f"Vendor confirmed {updated.confirmed_qty} of {updated.requested_qty}; "
            f"backorder {updated.backorder_qty}"
        )
        await notification_tool.notify_operations(
            "Partial confirmation",
            f"Assignment {assignment_id} ({updated.product_sku}) has a backorder of "
            f"{updated.backorder_qty} unit(s) to re-assign."
        )
        return updated

    async def decline(self,
                      assignment_id: AssignmentId,
                      reason: Any,
                      remarks: Optional[str] = None,
                      actor: Actor = SYSTEM_ACTOR) -> Assignment:
        assignment = await self.get(assignment_id)
        updated = await self._transition(
            db.assignments, "Assignment", assignment,
            lambda a: a.decline(reason, actor.id, remarks)
        )
        await self._after_decision(assignment, updated, actor,
                                   f"Vendor declined: {updated.decline_reason.value}")
        await notification_tool.notify_operations(
            "Assignment declined",
            f"Vendor {updated.vendor_id} declined {updated.requested_qty} x {updated.product_sku} "
            f"({updated.decline_reason.value}); the item needs a new vendor."
        )
        return updated

    async def mark_not_available(self,
                                 assignment_id: AssignmentId,
                                 remarks: Optional[str] = None,
                                 actor: Actor = SYSTEM_ACTOR) -> Assignment:
        assignment = await self.get(assignment_id)
        updated = await self._transition(
            db.assignments, "Assignment", assignment,
            lambda a: a.mark_not_available(actor.id, remarks)
        )
        await self._after_decision(assignment, updated, actor,
                                   remarks or "Closed as not available")
        return updated

    async def _after_decision(self, before: Assignment, after: Assignment, actor: Actor, details: str):
        await audit_logger.log_transition(
            "Assignment", after.assignment_id, before.status, after.status,
            actor=actor, details=details,
            related={"order_id": after.order_id, "order_item_id": after.order_item_id}
        )
        logger.info(f"Assignment {after.assignment_id}: {before.status.value} -> {after.status.value}")

assignment_service = AssignmentService()
