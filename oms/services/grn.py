import logging
from datetime import datetime
from typing import List, Optional

from pymongo.errors import DuplicateKeyError

from oms.database import db
from oms.errors import InvalidStateError, ValidationError
from oms.guardrails.audit_logger import audit_logger, SYSTEM_ACTOR
from oms.models.audit import Actor
from oms.models.base import new_id, DispatchId, GRNNumber
from oms.models.enums import GRNStatus
from oms.models.grn import GoodsReceiptNote, ReceiptResult, aggregate_grn_status, classify_receipt
from oms.services.base import LifecycleService
from oms.services.payment import payment_service
from oms.tools.notification_tool import notification_tool

logger = logging.getLogger(__name__)

class GRNService(LifecycleService):
    """
    Goods receipt verification. A GRN is written once per dispatch and
    never edited; later corrections are annotations.
    """

    async def get(self, grn_number: GRNNumber) -> GoodsReceiptNote:
        return await self._load(db.grns, grn_number, "GoodsReceiptNote")

    async def record_grn(self,
                         dispatch_id: DispatchId,
                         results: List[ReceiptResult],
                         operator_remarks: Optional[str] = None,
                         actor: Actor = SYSTEM_ACTOR) -> GoodsReceiptNote:
        dispatch = await self._load(db.dispatches, dispatch_id, "Dispatch")

        previous = await db.grns.get_for_dispatch(dispatch_id)
        if previous is not None:
            raise self._already_recorded(dispatch_id, previous)

        dispatched = {dispatch.po_line_id: dispatch.dispatched_qty}
        seen = set()
        for result in results:
            if result.po_line_id not in dispatched:
                raise ValidationError(
                    f"PO line {result.po_line_id} was not part of dispatch {dispatch_id}",
                    entity="Dispatch", entity_id=dispatch_id
                )
            if result.po_line_id in seen:
                raise ValidationError(
                    f"PO line {result.po_line_id} reported more than once",
                    entity="Dispatch", entity_id=dispatch_id
                )
            seen.add(result.po_line_id)
        missing = [line_id for line_id in dispatched if line_id not in seen]
        if missing:
            raise ValidationError(
                f"No receipt result for dispatched line(s): {', '.join(missing)}",
                entity="Dispatch", entity_id=dispatch_id
            )

        lines = [classify_receipt(dispatched[r.po_line_id], r) for r in results]
        status = aggregate_grn_status(line.item_status for line in lines)
        now = datetime.utcnow()
        grn = GoodsReceiptNote(
            grn_number=new_id("GRN"),
            dispatch_id=dispatch_id,
            po_number=dispatch.po_number,
            vendor_id=dispatch.vendor_id,
            grn_status=status,
            items=lines,
            operator_remarks=operator_remarks,
            received_at=now,
            verified_at=now,
            verified_by=actor.id,
        )
        try:
            await db.grns.create(grn)
        except DuplicateKeyError:
            raise self._already_recorded(dispatch_id, await db.grns.get_for_dispatch(dispatch_id))

        await audit_logger.log_transition(
            "GoodsReceiptNote", grn.grn_number, GRNStatus.PENDING_VERIFICATION, status, actor=actor,
            details="; ".join(l.rejection_reason for l in lines if l.rejection_reason) or "All items received in order",
            related={"dispatch_id": dispatch_id, "po_number": dispatch.po_number}
        )
        logger.info(f"GRN {grn.grn_number} recorded for dispatch {dispatch_id}: {status.value}")

        await payment_service.refresh_delivery_mirror(dispatch.po_number)

        if status != GRNStatus.VERIFIED_OK:
            await notification_tool.notify_vendor(
                dispatch.vendor_id,
                f"Receipt discrepancy on {dispatch.po_number}",
                f"GRN {grn.grn_number} for dispatch {dispatch_id} was recorded as {status.value}."
            )
        return grn

    def _already_recorded(self, dispatch_id: DispatchId, existing: Optional[GoodsReceiptNote]) -> InvalidStateError:
        logger.warning(f"Duplicate GRN attempt for dispatch {dispatch_id}")
        return InvalidStateError(
            f"Dispatch {dispatch_id} already has a GRN; re-deliveries need a new dispatch",
            entity="Dispatch",
            entity_id=dispatch_id,
            current=existing.grn_number if existing else None
        )

grn_service = GRNService()
