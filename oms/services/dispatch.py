import logging
from datetime import datetime
from typing import List, Optional

from oms.config import settings
from oms.database import db
from oms.errors import InvalidStateError, NotFoundError, ValidationError
from oms.guardrails.audit_logger import audit_logger, SYSTEM_ACTOR
from oms.models.audit import Actor
from oms.models.base import new_id, DispatchId, PONumber, POLineId
from oms.models.dispatch import Dispatch, LogisticsDetails, committed_qty
from oms.models.enums import POStatus
from oms.models.purchase_order import PurchaseOrder
from oms.services.base import LifecycleService
from oms.tools.notification_tool import notification_tool

logger = logging.getLogger(__name__)

class DispatchService(LifecycleService):

    async def po_for_line(self, po_line_id: POLineId) -> PurchaseOrder:
        po = await db.purchase_orders.get_by_line(po_line_id)
        if po is None:
            raise NotFoundError(f"PO line {po_line_id} not found", entity="POLine", entity_id=po_line_id)
        return po

    async def get(self, dispatch_id: DispatchId) -> Dispatch:
        return await self._load(db.dispatches, dispatch_id, "Dispatch")

    async def list_for_po(self, po_number: PONumber) -> List[Dispatch]:
        return await db.dispatches.list_for_po(po_number)

    async def create_dispatch(self,
                              po_line_id: POLineId,
                              dispatched_qty: int,
                              logistics: Optional[LogisticsDetails] = None,
                              actor: Actor = SYSTEM_ACTOR) -> Dispatch:
        """
        Record a vendor shipment against one PO line. Blank carrier details
        mean the goods were handed to a local porter.
        """
        logistics = logistics or LogisticsDetails()
        po = await self.po_for_line(po_line_id)
        if po.po_status != POStatus.GENERATED:
            raise InvalidStateError(
                f"PO {po.po_number} is {po.po_status.value}; goods can only ship against a generated PO",
                entity="PurchaseOrder",
                entity_id=po.po_number,
                current=po.po_status.value,
                expected=POStatus.GENERATED.value
            )

        line = po.get_line(po_line_id)
        if dispatched_qty is None or dispatched_qty <= 0:
            raise ValidationError("Dispatched quantity must be positive", entity="POLine", entity_id=po_line_id)

        committed = committed_qty(
            po_line_id,
            await db.dispatches.list_for_po(po.po_number),
            await db.grns.list_for_po(po.po_number)
        )
        remaining = line.confirmed_qty - committed
        if remaining <= 0:
            raise InvalidStateError(
                f"PO line {po_line_id} is fully dispatched ({committed} of {line.confirmed_qty})",
                entity="POLine",
                entity_id=po_line_id,
                current="Dispatched"
            )
        if dispatched_qty > remaining:
            raise ValidationError(
                f"Dispatched quantity {dispatched_qty} exceeds the {remaining} unit(s) left of "
                f"confirmed quantity {line.confirmed_qty}",
                entity="POLine",
                entity_id=po_line_id
            )

        dispatch_date = logistics.dispatch_date or datetime.utcnow()
        eta = logistics.estimated_delivery_date
        if eta is not None and eta < dispatch_date:
            raise ValidationError(
                "Estimated delivery date cannot be before the dispatch date",
                entity="POLine",
                entity_id=po_line_id
            )

        # Bump the PO so two concurrent dispatches of the same line
        # cannot both pass the remaining-quantity check on the same read.
        await self._transition(
            db.purchase_orders, "PurchaseOrder", po, lambda p: {},
            changes={"dispatch_seq": po.dispatch_seq + 1}
        )

        local = logistics.is_local_handoff
        dispatch = Dispatch(
            dispatch_id=new_id("DSP"),
            po_number=po.po_number,
            po_line_id=po_line_id,
            vendor_id=po.vendor_id,
            dispatched_qty=dispatched_qty,
            awb_number=(logistics.awb_number or "").strip() or settings.LOCAL_PORTER_AWB,
            logistics_partner=(logistics.logistics_partner or "").strip() or settings.LOCAL_PORTER_PARTNER,
            dispatch_date=dispatch_date,
            estimated_delivery_date=eta,
            remarks=logistics.remarks,
        )
        await db.dispatches.create(dispatch)

        await audit_logger.log_transition(
            "Dispatch", dispatch.dispatch_id, None, "Dispatched", actor=actor,
            details=f"{dispatched_qty} x {line.product_sku} via {dispatch.logistics_partner} ({dispatch.awb_number})",
            related={"po_number": po.po_number, "po_line_id": po_line_id}
        )
        await notification_tool.notify_operations(
            "Goods dispatched",
            f"Vendor {po.vendor_id} dispatched {dispatched_qty} x {line.product_sku} on PO {po.po_number}"
            + (" by local porter." if local else f", AWB {dispatch.awb_number}.")
        )
        logger.info(f"Dispatch {dispatch.dispatch_id} created for PO line {po_line_id}")
        return dispatch

dispatch_service = DispatchService()
