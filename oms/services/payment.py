import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from oms.config import settings
from oms.database import db
from oms.errors import ConcurrentModificationError, InvalidStateError, NotFoundError, OMSError
from oms.guardrails.audit_logger import audit_logger, SYSTEM_ACTOR
from oms.models.audit import ActionType, Actor
from oms.models.base import InvoiceId, PaymentId, PONumber, VendorId
from oms.models.enums import DeliveryVerified, InvoiceStatus, PaymentStatus
from oms.models.grn import GRNAnnotation
from oms.models.invoice import Invoice
from oms.models.payment import PaymentRecord, po_delivery_verified
from oms.services.base import LifecycleService
from oms.tools.notification_tool import notification_tool

logger = logging.getLogger(__name__)

class PaymentService(LifecycleService):
    """
    Payment release engine.

    Release is gated on delivery verified == Yes, where delivery verified
    is the GRN mirror unless accounts overrode it through an amount edit.
    """

    async def get(self, payment_id: PaymentId) -> PaymentRecord:
        return await self._load(db.payments, payment_id, "PaymentRecord")

    async def list_pending(self, vendor_id: Optional[VendorId] = None) -> List[PaymentRecord]:
        return await db.payments.list_pending(vendor_id)

    async def edit_amount(self,
                          payment_id: PaymentId,
                          new_amount: float,
                          reason: str,
                          new_delivery_status: Optional[Any] = None,
                          actor: Actor = SYSTEM_ACTOR) -> PaymentRecord:
        payment = await self.get(payment_id)
        seen = [grn.grn_number for grn in await db.grns.list_for_po(payment.po_number)]
        updated = await self._transition(
            db.payments, "PaymentRecord", payment,
            lambda p: p.edit_amount(new_amount, reason, actor.id, new_delivery_status, covers_grns=seen)
        )

        edit = updated.amount_edits[-1]
        await audit_logger.log_event(
            entity_type="PaymentRecord",
            entity_id=payment_id,
            event_type=ActionType.CORRECTION,
            actor=actor,
            action_details=f"Amount {edit.previous_amount:.2f} -> {edit.new_amount:.2f}: {edit.reason}",
            from_status=payment.delivery_verified.value,
            to_status=updated.delivery_verified.value,
            metadata={"related": {"po_number": updated.po_number, "invoice_id": updated.invoice_id}}
        )

        if edit.delivery_status is not None:
            await self._annotate_grns(updated, edit.delivery_status, edit.reason, actor)

        logger.info(f"Payment {payment_id} amount edited to {edit.new_amount:.2f} by {actor.id}")
        return updated

    async def release(self, payment_id: PaymentId, reference_id: str, actor: Actor = SYSTEM_ACTOR) -> PaymentRecord:
        payment = await self.get(payment_id)
        invoice = await self._load(db.invoices, payment.invoice_id, "Invoice")

        def decide(p: PaymentRecord) -> Dict[str, Any]:
            changes = p.release(reference_id, actor.id)
            self._require_approved(invoice)
            return changes

        try:
            updated = await self._transition(db.payments, "PaymentRecord", payment, decide)
        except OMSError as e:
            logger.warning(f"Release of payment {payment_id} refused: {e.message}")
            raise

        await audit_logger.log_transition(
            "PaymentRecord", payment_id, PaymentStatus.PENDING, PaymentStatus.RELEASED, actor=actor,
            details=f"Released {updated.invoice_amount:.2f} with reference {updated.reference_id}",
            related={"invoice_id": updated.invoice_id, "po_number": updated.po_number}
        )
        try:
            await self._mark_invoice_paid(invoice, actor)
        except ConcurrentModificationError as e:
            # The funds are out; the invoice stays Approved until reconciled.
            logger.warning(f"Payment {payment_id} released but invoice not marked paid: {e.message}")

        try:
            await notification_tool.notify_vendor(
                updated.vendor_id,
                "Payment released",
                f"Payment of {updated.invoice_amount:.2f} for PO {updated.po_number} was released "
                f"(reference {updated.reference_id})."
            )
        except Exception as e:
            logger.error(f"Payment {payment_id} released but vendor notification failed: {e}")

        logger.info(f"Payment {payment_id} released, reference {updated.reference_id}")
        return updated

    async def bulk_release(self, entries: List[Dict[str, str]], actor: Actor = SYSTEM_ACTOR) -> Dict[str, Any]:
        """Release each entry on its own; refused entries come back in `skipped`."""
        released: List[str] = []
        skipped: List[Dict[str, Any]] = []

        for entry in entries:
            payment_id = entry.get("payment_id")
            try:
                await self.release(payment_id, entry.get("reference_id"), actor=actor)
                released.append(payment_id)
            except OMSError as e:
                skipped.append({"payment_id": payment_id, "reason": e.message, "error": type(e).__name__})

        logger.info(f"Bulk release: {len(released)} released, {len(skipped)} skipped")
        return {"released_count": len(released), "released": released, "skipped": skipped}

    async def refresh_delivery_mirror(self, po_number: PONumber) -> Optional[PaymentRecord]:
        """
        Recompute the GRN delivery mirror of the PO's payment record.

        A delivery override made before a newer GRN was recorded gives way
        to the mirror, unless the payment is already released. The mirror
        is derived, so a conflicting write is recomputed from a fresh read
        instead of being reported.
        """
        po = await self._load(db.purchase_orders, po_number, "PurchaseOrder")
        grns = await db.grns.list_for_po(po_number)
        delivery = po_delivery_verified(po, grns)
        grn_numbers = [grn.grn_number for grn in grns]

        for _ in range(3):
            payment = await db.payments.get_for_po(po_number)
            if payment is None:
                logger.warning(f"No payment record for PO {po_number}; delivery mirror not refreshed")
                return None

            changes: Dict[str, Any] = {}
            if payment.grn_delivery != delivery:
                changes["grn_delivery"] = delivery
            clear_override = not payment.is_released and payment.override_superseded_by(grn_numbers)
            if clear_override:
                changes["delivery_override"] = None
            if not changes:
                return payment

            updated = await db.payments.update_versioned(payment, changes)
            if updated is not None:
                logger.info(f"Payment {payment.payment_id} delivery mirror {payment.grn_delivery.value} -> {delivery.value}")
                if clear_override:
                    await audit_logger.log_event(
                        entity_type="PaymentRecord",
                        entity_id=payment.payment_id,
                        event_type=ActionType.CORRECTION,
                        actor=SYSTEM_ACTOR,
                        action_details="Delivery override superseded by a newer GRN",
                        from_status=payment.delivery_verified.value,
                        to_status=updated.delivery_verified.value,
                        metadata={"related": {"po_number": po_number}}
                    )
                return updated

        raise ConcurrentModificationError(
            f"Payment record for PO {po_number} kept changing; delivery mirror not refreshed",
            entity="PaymentRecord",
            entity_id=po_number
        )

    async def set_due_date(self, invoice_id: InvoiceId, invoice_date: datetime) -> Optional[PaymentRecord]:
        payment = await db.payments.get_for_invoice(invoice_id)
        if payment is None:
            raise NotFoundError(f"No payment record for invoice {invoice_id}", entity="Invoice", entity_id=invoice_id)
        if payment.is_released:
            return payment
        due = invoice_date + timedelta(days=settings.PAYMENT_DUE_DAYS)
        return await self._transition(db.payments, "PaymentRecord", payment, lambda p: {"due_date": due})

    async def _annotate_grns(self, payment: PaymentRecord, status: DeliveryVerified, reason: str, actor: Actor):
        note = GRNAnnotation(
            note=f"Delivery overridden to {status.value} by accounts: {reason}",
            delivery_status=status,
            source=f"payment:{payment.payment_id}",
            created_by=actor.id,
        )
        for grn in await db.grns.list_for_po(payment.po_number):
            await db.grns.append(grn.grn_number, "annotations", note)
            await audit_logger.log_event(
                entity_type="GoodsReceiptNote",
                entity_id=grn.grn_number,
                event_type=ActionType.CORRECTION,
                actor=actor,
                action_details=note.note,
                metadata={"related": {"payment_id": payment.payment_id}}
            )

    async def _mark_invoice_paid(self, invoice: Invoice, actor: Actor):
        # Accounts uploads may bump the invoice version; Approved -> Paid still holds on a re-read.
        for _ in range(3):
            updated = await db.invoices.update_versioned(invoice, invoice.mark_paid())
            if updated is not None:
                await audit_logger.log_transition(
                    "Invoice", invoice.invoice_id, InvoiceStatus.APPROVED, InvoiceStatus.PAID, actor=actor,
                    details="Paid on payment release"
                )
                return updated
            invoice = await self._load(db.invoices, invoice.invoice_id, "Invoice")
        raise ConcurrentModificationError(
            f"Invoice {invoice.invoice_id} kept changing; not marked paid",
            entity="Invoice",
            entity_id=invoice.invoice_id
        )

    @staticmethod
    def _require_approved(invoice: Invoice):
        if invoice.invoice_status != InvoiceStatus.APPROVED:
            raise InvalidStateError(
                f"Invoice {invoice.invoice_id} is {invoice.invoice_status.value}; only approved invoices are paid",
                entity="Invoice",
                entity_id=invoice.invoice_id,
                current=invoice.invoice_status.value,
                expected=InvoiceStatus.APPROVED.value
            )

payment_service = PaymentService()
