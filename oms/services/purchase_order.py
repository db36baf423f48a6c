import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List

from pymongo.errors import DuplicateKeyError

from oms.database import db
from oms.errors import ConcurrentModificationError, NotFoundError, OMSError
from oms.guardrails.audit_logger import audit_logger, SYSTEM_ACTOR
from oms.models.assignment import Assignment
from oms.models.audit import Actor
from oms.models.base import new_id, OrderId, PONumber, VendorId
from oms.models.enums import AssignmentStatus, GRNStatus, InvoiceStatus, OrderStatus, POStatus
from oms.models.grn import GoodsReceiptNote
from oms.models.invoice import Invoice
from oms.models.payment import PaymentRecord
from oms.models.purchase_order import PurchaseOrder, build_po_lines, eligible_assignments
from oms.services.base import LifecycleService
from oms.tools.notification_tool import notification_tool

logger = logging.getLogger(__name__)


def derive_order_status(assignments: Iterable[Assignment],
                        pos: Iterable[PurchaseOrder],
                        grns: Iterable[GoodsReceiptNote],
                        invoices: Iterable[Invoice]) -> OrderStatus:
    """
    Order status as a pure function of its documents.
    Precedence: Closed > Delivered > POGenerated > AwaitingPO > Confirmed > Received.
    """
    assignments = list(assignments)
    generated = [po for po in pos if po.po_status == POStatus.GENERATED]
    paid = {inv.po_number for inv in invoices if inv.invoice_status == InvoiceStatus.PAID}

    if generated and all(po.po_number in paid for po in generated):
        return OrderStatus.CLOSED
    if any(g.grn_status in (GRNStatus.VERIFIED_OK, GRNStatus.PARTIALLY_VERIFIED) for g in grns):
        return OrderStatus.DELIVERED
    if generated:
        return OrderStatus.PO_GENERATED

    confirmed = any(a.status.is_confirmed for a in assignments)
    pending = any(a.status == AssignmentStatus.PENDING for a in assignments)
    if confirmed and not pending:
        return OrderStatus.AWAITING_PO
    if confirmed:
        return OrderStatus.CONFIRMED
    return OrderStatus.RECEIVED


class PurchaseOrderService(LifecycleService):

    async def get(self, po_number: PONumber) -> PurchaseOrder:
        return await self._load(db.purchase_orders, po_number, "PurchaseOrder")

    async def generate_po(self, order_id: OrderId, vendor_id: VendorId, actor: Actor = SYSTEM_ACTOR) -> PurchaseOrder:
        """
        Generate the PO for one (order, vendor) pair.

        Safe to repeat: a Generated PO is returned, with its invoice and
        payment record opened if an interrupted call left them out, and a
        PO left Pending is completed. The unique (order_id, vendor_id)
        index settles concurrent first calls.
        """
        order = await self._load(db.orders, order_id, "Order")

        existing = await db.purchase_orders.get_for_order_vendor(order_id, vendor_id)
        if existing is not None and existing.po_status == POStatus.GENERATED:
            logger.info(f"PO {existing.po_number} already generated for {order_id}/{vendor_id}")
            await self._open_payment(existing, await self._open_invoice(existing))
            return existing

        assignments = await db.assignments.list_for_order(order_id, vendor_id)
        confirmed = eligible_assignments(order_id, vendor_id, assignments)

        if existing is None:
            try:
                existing = await db.purchase_orders.create(
                    PurchaseOrder(po_number=new_id("PO"), order_id=order_id, vendor_id=vendor_id)
                )
            except DuplicateKeyError:
                existing = await db.purchase_orders.get_for_order_vendor(order_id, vendor_id)
                if existing.po_status == POStatus.GENERATED:
                    return existing

        lines = build_po_lines(confirmed)
        total = round(sum(line.line_total for line in lines), 2)
        try:
            po = await self._transition(
                db.purchase_orders, "PurchaseOrder", existing, lambda p: {},
                changes={
                    "po_status": POStatus.GENERATED,
                    "items": lines,
                    "total_amount": total,
                    "generated_at": datetime.utcnow(),
                    "generated_by": actor.id,
                }
            )
        except ConcurrentModificationError:
            latest = await db.purchase_orders.get_for_order_vendor(order_id, vendor_id)
            if latest is not None and latest.po_status == POStatus.GENERATED:
                return latest
            raise

        invoice = await self._open_invoice(po)
        await self._open_payment(po, invoice)

        await audit_logger.log_transition(
            "PurchaseOrder", po.po_number, POStatus.PENDING, POStatus.GENERATED, actor=actor,
            details=f"PO generated with {len(lines)} line(s), total {total:.2f}",
            related={"order_id": order_id, "vendor_id": vendor_id, "invoice_id": invoice.invoice_id}
        )
        await notification_tool.notify_vendor(
            vendor_id,
            f"Purchase order {po.po_number}",
            f"PO {po.po_number} for order {order.order_number} is ready: {len(lines)} line(s), "
            f"total {total:.2f}."
        )
        logger.info(f"Generated PO {po.po_number} for order {order_id}, vendor {vendor_id}")
        return po

    async def bulk_generate_po(self, order_ids: List[OrderId], actor: Actor = SYSTEM_ACTOR) -> Dict[str, Any]:
        """Generate every (order, vendor) PO it can; failures are reported per pair."""
        generated: List[PurchaseOrder] = []
        failures: List[Dict[str, Any]] = []

        for order_id in order_ids:
            try:
                await self._load(db.orders, order_id, "Order")
            except NotFoundError as e:
                failures.append({"order_id": order_id, "vendor_id": None, **e.to_dict()})
                continue

            assignments = await db.assignments.list_for_order(order_id)
            vendors = list(dict.fromkeys(a.vendor_id for a in assignments if a.status.is_decided))
            if not vendors:
                failures.append({
                    "order_id": order_id,
                    "vendor_id": None,
                    "error": "IneligibleAssignmentError",
                    "detail": "No decided assignments for order",
                })
                continue

            for vendor_id in vendors:
                try:
                    generated.append(await self.generate_po(order_id, vendor_id, actor=actor))
                except OMSError as e:
                    logger.warning(f"Bulk PO generation skipped {order_id}/{vendor_id}: {e.message}")
                    failures.append({"order_id": order_id, "vendor_id": vendor_id, **e.to_dict()})

        return {"generated": generated, "failures": failures}

    async def order_status(self, order_id: OrderId) -> OrderStatus:
        await self._load(db.orders, order_id, "Order")
        assignments = await db.assignments.list_for_order(order_id)
        pos = await db.purchase_orders.list_for_order(order_id)
        po_numbers = [po.po_number for po in pos]
        grns = await db.grns.list_for_pos(po_numbers) if po_numbers else []
        invoices = await db.invoices.list_for_pos(po_numbers) if po_numbers else []
        return derive_order_status(assignments, pos, grns, invoices)

    async def _open_invoice(self, po: PurchaseOrder) -> Invoice:
        invoice = await db.invoices.get_for_po(po.po_number)
        if invoice is not None:
            return invoice
        try:
            return await db.invoices.create(
                Invoice(invoice_id=new_id("INV"), po_number=po.po_number, vendor_id=po.vendor_id)
            )
        except DuplicateKeyError:
            return await db.invoices.get_for_po(po.po_number)

    async def _open_payment(self, po: PurchaseOrder, invoice: Invoice) -> PaymentRecord:
        payment = await db.payments.get_for_invoice(invoice.invoice_id)
        if payment is not None:
            return payment
        try:
            return await db.payments.create(
                PaymentRecord(
                    payment_id=new_id("PAY"),
                    invoice_id=invoice.invoice_id,
                    po_number=po.po_number,
                    vendor_id=po.vendor_id,
                    invoice_amount=po.total_amount,
                )
            )
        except DuplicateKeyError:
            return await db.payments.get_for_invoice(invoice.invoice_id)

purchase_order_service = PurchaseOrderService()
