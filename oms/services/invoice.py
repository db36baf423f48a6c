import logging
from typing import BinaryIO, Optional

from oms.database import db
from oms.errors import ValidationError
from oms.guardrails.audit_logger import audit_logger, SYSTEM_ACTOR
from oms.models.audit import ActionType, Actor
from oms.models.base import InvoiceId
from oms.models.enums import AttachmentKind
from oms.models.invoice import AttachmentRef, Invoice
from oms.services.base import LifecycleService
from oms.services.payment import payment_service
from oms.tools.attachment_store import attachment_store
from oms.tools.notification_tool import notification_tool

logger = logging.getLogger(__name__)

class InvoiceService(LifecycleService):
    """
    Invoice reconciliation: the vendor and accounts documents are uploaded
    independently, and only the vendor's one is what gets approved.
    """

    async def get(self, invoice_id: InvoiceId) -> Invoice:
        return await self._load(db.invoices, invoice_id, "Invoice")

    async def upload_vendor_invoice(self,
                                    invoice_id: InvoiceId,
                                    file_name: str,
                                    stream: BinaryIO,
                                    actor: Actor = SYSTEM_ACTOR) -> Invoice:
        invoice = await self.get(invoice_id)
        # Refuse before storing anything.
        self._require_file_name(invoice, file_name)
        invoice.require_vendor_upload_open()

        ref = await attachment_store.store(file_name, stream, invoice_id, AttachmentKind.VENDOR, actor.id)
        return await self.attach_vendor_invoice(invoice_id, ref, actor=actor, current=invoice)

    async def attach_vendor_invoice(self,
                                    invoice_id: InvoiceId,
                                    ref: AttachmentRef,
                                    actor: Actor = SYSTEM_ACTOR,
                                    current: Optional[Invoice] = None) -> Invoice:
        """Record an already stored vendor document on the invoice."""
        invoice = current or await self.get(invoice_id)
        updated = await self._transition(db.invoices, "Invoice", invoice, lambda i: i.upload_vendor(ref))

        await payment_service.set_due_date(invoice_id, updated.invoice_date)
        await audit_logger.log_transition(
            "Invoice", invoice_id, invoice.invoice_status, updated.invoice_status, actor=actor,
            details=f"Vendor invoice {ref.file_name} uploaded"
            + (" after rejection" if invoice.invoice_status != updated.invoice_status else ""),
            related={"po_number": updated.po_number}
        )
        logger.info(f"Vendor invoice uploaded for {invoice_id}: {ref.file_name}")
        return updated

    async def upload_accounts_invoice(self,
                                      invoice_id: InvoiceId,
                                      file_name: str,
                                      stream: BinaryIO,
                                      actor: Actor = SYSTEM_ACTOR) -> Invoice:
        invoice = await self.get(invoice_id)
        self._require_file_name(invoice, file_name)
        invoice.require_accounts_upload_open()

        ref = await attachment_store.store(file_name, stream, invoice_id, AttachmentKind.ACCOUNTS, actor.id)
        return await self.attach_accounts_invoice(invoice_id, ref, actor=actor, current=invoice)

    async def attach_accounts_invoice(self,
                                      invoice_id: InvoiceId,
                                      ref: AttachmentRef,
                                      actor: Actor = SYSTEM_ACTOR,
                                      current: Optional[Invoice] = None) -> Invoice:
        invoice = current or await self.get(invoice_id)
        updated = await self._transition(db.invoices, "Invoice", invoice, lambda i: i.upload_accounts(ref))
        await audit_logger.log_event(
            entity_type="Invoice",
            entity_id=invoice_id,
            event_type=ActionType.USER_ACTION,
            actor=actor,
            action_details=f"Accounts invoice {ref.file_name} uploaded",
            from_status=invoice.invoice_status.value,
            to_status=updated.invoice_status.value
        )
        logger.info(f"Accounts invoice uploaded for {invoice_id}: {ref.file_name}")
        return updated

    async def approve(self, invoice_id: InvoiceId, actor: Actor = SYSTEM_ACTOR) -> Invoice:
        invoice = await self.get(invoice_id)
        updated = await self._transition(db.invoices, "Invoice", invoice, lambda i: i.approve(actor.id))
        await audit_logger.log_transition(
            "Invoice", invoice_id, invoice.invoice_status, updated.invoice_status, actor=actor,
            details="Invoice approved", related={"po_number": updated.po_number}
        )
        logger.info(f"Invoice {invoice_id} approved by {actor.id}")
        return updated

    async def reject(self, invoice_id: InvoiceId, reason: str, actor: Actor = SYSTEM_ACTOR) -> Invoice:
        invoice = await self.get(invoice_id)
        updated = await self._transition(db.invoices, "Invoice", invoice, lambda i: i.reject(reason, actor.id))
        await audit_logger.log_transition(
            "Invoice", invoice_id, invoice.invoice_status, updated.invoice_status, actor=actor,
            details=f"Invoice rejected: {updated.rejection_reason}", related={"po_number": updated.po_number}
        )
        await notification_tool.notify_vendor(
            updated.vendor_id,
            f"Invoice for {updated.po_number} rejected",
            f"Reason: {updated.rejection_reason}. Please upload a corrected invoice."
        )
        logger.info(f"Invoice {invoice_id} rejected by {actor.id}")
        return updated

    async def vendor_view(self, invoice_id: InvoiceId) -> Optional[AttachmentRef]:
        invoice = await self.get(invoice_id)
        return invoice.vendor_view()

    @staticmethod
    def _require_file_name(invoice: Invoice, file_name: Optional[str]):
        if not file_name or not file_name.strip():
            raise ValidationError("Uploaded file needs a name", entity="Invoice", entity_id=invoice.invoice_id)

invoice_service = InvoiceService()
