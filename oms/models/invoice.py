from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field, computed_field
from oms.errors import InvalidStateError, ValidationError
from oms.models.base import VersionedDocument, InvoiceId, PONumber, VendorId
from oms.models.enums import InvoiceStatus

class AttachmentRef(BaseModel):
    """
    Reference returned by the attachment store. Only counts as present
    when both the file name and the URL are set; a half-written upload
    is treated as no upload at all.
    """
    file_name: Optional[str] = None
    url: Optional[str] = None
    uploaded_by: Optional[str] = None
    uploaded_at: Optional[datetime] = None

    @property
    def is_present(self) -> bool:
        return bool(self.file_name) and bool(self.url)


def present(ref: Optional[AttachmentRef]) -> Optional[AttachmentRef]:
    return ref if ref is not None and ref.is_present else None


class NoAttachments(BaseModel):
    kind: Literal["Neither"] = "Neither"

class VendorOnly(BaseModel):
    kind: Literal["VendorOnly"] = "VendorOnly"
    vendor: AttachmentRef

class AccountsOnly(BaseModel):
    kind: Literal["AccountsOnly"] = "AccountsOnly"
    accounts: AttachmentRef

class BothAttachments(BaseModel):
    kind: Literal["Both"] = "Both"
    vendor: AttachmentRef
    accounts: AttachmentRef

InvoiceAttachments = Annotated[
    Union[NoAttachments, VendorOnly, AccountsOnly, BothAttachments],
    Field(discriminator="kind")
]


class RejectionEntry(BaseModel):
    reason: str
    rejected_by: str
    rejected_at: datetime = Field(default_factory=datetime.utcnow)
    vendor_file_name: Optional[str] = None


class Invoice(VersionedDocument):
    """
    Billing record for one PO, carrying two independently owned documents:
    the vendor's upload and the accounts team's reconciled copy.
    """
    invoice_id: InvoiceId = Field(..., description="Unique internal ID (INV-XXXXXXXXXX)")
    po_number: PONumber
    vendor_id: VendorId

    invoice_status: InvoiceStatus = Field(default=InvoiceStatus.PENDING_VERIFICATION)

    vendor_attachment: Optional[AttachmentRef] = None
    accounts_attachment: Optional[AttachmentRef] = None
    invoice_date: Optional[datetime] = None

    rejection_reason: Optional[str] = None
    rejections: List[RejectionEntry] = []

    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    paid_at: Optional[datetime] = None

    @computed_field
    @property
    def attachments(self) -> InvoiceAttachments:
        vendor = present(self.vendor_attachment)
        accounts = present(self.accounts_attachment)
        if vendor and accounts:
            return BothAttachments(vendor=vendor, accounts=accounts)
        if vendor:
            return VendorOnly(vendor=vendor)
        if accounts:
            return AccountsOnly(accounts=accounts)
        return NoAttachments()

    @property
    def has_vendor_attachment(self) -> bool:
        return present(self.vendor_attachment) is not None

    @computed_field
    @property
    def can_reupload(self) -> bool:
        return self.invoice_status in (InvoiceStatus.PENDING_VERIFICATION, InvoiceStatus.REJECTED)

    def vendor_view(self) -> Optional[AttachmentRef]:
        """
        The document to show the vendor as "your invoice".
        Hidden when it is really the accounts copy (same URL).
        """
        attachments = self.attachments
        if isinstance(attachments, VendorOnly):
            return attachments.vendor
        if isinstance(attachments, BothAttachments) and attachments.vendor.url != attachments.accounts.url:
            return attachments.vendor
        return None

    # Transitions: return the field changes, the service persists them.

    def upload_vendor(self, ref: AttachmentRef) -> Dict[str, Any]:
        self._require_attachment(ref)
        self.require_vendor_upload_open()
        return {
            "vendor_attachment": ref,
            "invoice_date": ref.uploaded_at or datetime.utcnow(),
            "invoice_status": InvoiceStatus.PENDING_VERIFICATION,
            "rejection_reason": None,
        }

    def require_vendor_upload_open(self):
        if not self.can_reupload:
            raise InvalidStateError(
                f"Invoice {self.invoice_id} is {self.invoice_status.value}; vendor upload is closed",
                entity="Invoice",
                entity_id=self.invoice_id,
                current=self.invoice_status.value,
                expected=[InvoiceStatus.PENDING_VERIFICATION.value, InvoiceStatus.REJECTED.value]
            )

    def upload_accounts(self, ref: AttachmentRef) -> Dict[str, Any]:
        self._require_attachment(ref)
        self.require_accounts_upload_open()
        return {"accounts_attachment": ref}

    def require_accounts_upload_open(self):
        if self.invoice_status == InvoiceStatus.PAID:
            raise InvalidStateError(
                f"Invoice {self.invoice_id} is already paid",
                entity="Invoice",
                entity_id=self.invoice_id,
                current=self.invoice_status.value
            )

    def approve(self, approved_by: str) -> Dict[str, Any]:
        self._require_pending_verification("approve")
        if not self.has_vendor_attachment:
            raise InvalidStateError(
                f"Invoice {self.invoice_id} has no vendor invoice to approve",
                entity="Invoice",
                entity_id=self.invoice_id,
                current=self.attachments.kind,
                expected=["VendorOnly", "Both"]
            )
        return {
            "invoice_status": InvoiceStatus.APPROVED,
            "approved_at": datetime.utcnow(),
            "approved_by": approved_by,
        }

    def reject(self, reason: str, rejected_by: str) -> Dict[str, Any]:
        if not reason or not reason.strip():
            raise ValidationError(
                "A rejection reason is required",
                entity="Invoice", entity_id=self.invoice_id
            )
        self._require_pending_verification("reject")
        entry = RejectionEntry(
            reason=reason.strip(),
            rejected_by=rejected_by,
            vendor_file_name=self.vendor_attachment.file_name if self.vendor_attachment else None,
        )
        return {
            "invoice_status": InvoiceStatus.REJECTED,
            "rejection_reason": entry.reason,
            "rejections": self.rejections + [entry],
        }

    def mark_paid(self) -> Dict[str, Any]:
        if self.invoice_status != InvoiceStatus.APPROVED:
            raise InvalidStateError(
                f"Invoice {self.invoice_id} must be approved before it is paid",
                entity="Invoice",
                entity_id=self.invoice_id,
                current=self.invoice_status.value,
                expected=InvoiceStatus.APPROVED.value
            )
        return {"invoice_status": InvoiceStatus.PAID, "paid_at": datetime.utcnow()}

    def _require_pending_verification(self, action: str):
        if self.invoice_status != InvoiceStatus.PENDING_VERIFICATION:
            raise InvalidStateError(
                f"Cannot {action} invoice {self.invoice_id} in status {self.invoice_status.value}",
                entity="Invoice",
                entity_id=self.invoice_id,
                current=self.invoice_status.value,
                expected=InvoiceStatus.PENDING_VERIFICATION.value
            )

    def _require_attachment(self, ref: AttachmentRef):
        if not ref.is_present:
            raise ValidationError(
                "Attachment needs both a file name and a storage URL",
                entity="Invoice", entity_id=self.invoice_id
            )
