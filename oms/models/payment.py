from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from pydantic import BaseModel, Field, computed_field
from oms.errors import DeliveryNotVerifiedError, InvalidStateError, ValidationError
from oms.models.base import VersionedDocument, GRNNumber, InvoiceId, PaymentId, PONumber, VendorId
from oms.models.enums import DeliveryVerified, GRNItemStatus, PaymentStatus
from oms.models.grn import GoodsReceiptNote, accepted_qty, aggregate_grn_status, delivery_from_grn_status
from oms.models.purchase_order import PurchaseOrder

class DeliveryOverride(BaseModel):
    """
    Accounts-side correction of the delivery flag, kept next to the GRN
    mirror. It stands only until a GRN outside `covers_grns` is recorded.
    """
    status: DeliveryVerified
    reason: str
    set_by: str
    set_at: datetime = Field(default_factory=datetime.utcnow)
    covers_grns: List[GRNNumber] = []

class AmountEdit(BaseModel):
    previous_amount: float
    new_amount: float
    reason: str
    edited_by: str
    edited_at: datetime = Field(default_factory=datetime.utcnow)
    delivery_status: Optional[DeliveryVerified] = None

class PaymentRecord(VersionedDocument):
    """
    Accounts' ledger entry for paying one invoice.

    `grn_delivery` mirrors the GRNs of the PO and is recomputed whenever a
    GRN is written; `delivery_override` is the explicit correction made
    through an amount edit. Neither `delivery_verified` nor Overdue is
    stored: both are derived on read.
    """
    payment_id: PaymentId = Field(..., description="Unique ID (PAY-XXXXXXXXXX)")
    invoice_id: InvoiceId
    po_number: PONumber
    vendor_id: VendorId

    invoice_amount: float = Field(..., ge=0)
    grn_delivery: DeliveryVerified = Field(default=DeliveryVerified.NO)
    delivery_override: Optional[DeliveryOverride] = None

    payment_status: PaymentStatus = Field(default=PaymentStatus.PENDING)
    due_date: Optional[datetime] = None
    release_date: Optional[datetime] = None
    reference_id: Optional[str] = None
    released_by: Optional[str] = None

    amount_edits: List[AmountEdit] = []

    @computed_field
    @property
    def delivery_verified(self) -> DeliveryVerified:
        if self.delivery_override is not None:
            return self.delivery_override.status
        return self.grn_delivery

    @computed_field
    @property
    def display_status(self) -> PaymentStatus:
        return self.status_at(datetime.utcnow())

    def status_at(self, now: datetime) -> PaymentStatus:
        if self.payment_status == PaymentStatus.RELEASED:
            return PaymentStatus.RELEASED
        if self.due_date is not None and now > self.due_date:
            return PaymentStatus.OVERDUE
        return PaymentStatus.PENDING

    @property
    def is_released(self) -> bool:
        return self.payment_status == PaymentStatus.RELEASED

    def override_superseded_by(self, grn_numbers: Iterable[GRNNumber]) -> bool:
        """True when a GRN recorded after the override was set is among `grn_numbers`."""
        if self.delivery_override is None:
            return False
        return not set(grn_numbers) <= set(self.delivery_override.covers_grns)

    def edit_amount(self,
                    new_amount: float,
                    reason: str,
                    edited_by: str,
                    new_delivery_status: Optional[Any] = None,
                    covers_grns: Iterable[GRNNumber] = ()) -> Dict[str, Any]:
        """
        Amount correction for a delivery mismatch. The amount and the
        optional delivery override go out as one change set.
        """
        if new_amount is None or new_amount <= 0:
            raise ValidationError(
                "New amount must be greater than zero",
                entity="PaymentRecord", entity_id=self.payment_id
            )
        if not reason or not reason.strip():
            raise ValidationError(
                "A reason is required for an amount edit",
                entity="PaymentRecord", entity_id=self.payment_id
            )
        if new_delivery_status is not None:
            try:
                new_delivery_status = DeliveryVerified(new_delivery_status)
            except ValueError:
                raise ValidationError(
                    f"Unknown delivery status '{new_delivery_status}'",
                    entity="PaymentRecord", entity_id=self.payment_id,
                    expected=[d.value for d in DeliveryVerified]
                )
        if self.is_released:
            raise InvalidStateError(
                f"Payment {self.payment_id} is already released",
                entity="PaymentRecord",
                entity_id=self.payment_id,
                current=PaymentStatus.RELEASED.value,
                expected=PaymentStatus.PENDING.value
            )
        if self.delivery_verified == DeliveryVerified.YES:
            raise InvalidStateError(
                f"Payment {self.payment_id} has verified delivery; amount edits only resolve delivery mismatches",
                entity="PaymentRecord",
                entity_id=self.payment_id,
                current=DeliveryVerified.YES.value,
                expected=[DeliveryVerified.NO.value, DeliveryVerified.PARTIAL.value]
            )

        new_amount = round(float(new_amount), 2)
        edit = AmountEdit(
            previous_amount=self.invoice_amount,
            new_amount=new_amount,
            reason=reason.strip(),
            edited_by=edited_by,
            delivery_status=new_delivery_status,
        )
        changes = {
            "invoice_amount": new_amount,
            "amount_edits": self.amount_edits + [edit],
        }
        if new_delivery_status is not None:
            changes["delivery_override"] = DeliveryOverride(
                status=new_delivery_status, reason=edit.reason, set_by=edited_by,
                covers_grns=list(covers_grns)
            )
        return changes

    def release(self, reference_id: str, released_by: str) -> Dict[str, Any]:
        if not reference_id or not reference_id.strip():
            raise ValidationError(
                "A settlement reference is required to release a payment",
                entity="PaymentRecord", entity_id=self.payment_id
            )
        if self.is_released:
            raise InvalidStateError(
                f"Payment {self.payment_id} is already released (reference {self.reference_id})",
                entity="PaymentRecord",
                entity_id=self.payment_id,
                current=PaymentStatus.RELEASED.value,
                expected=PaymentStatus.PENDING.value
            )
        if self.delivery_verified != DeliveryVerified.YES:
            raise DeliveryNotVerifiedError(
                f"Payment {self.payment_id} cannot be released: delivery verified is "
                f"{self.delivery_verified.value}",
                entity="PaymentRecord",
                entity_id=self.payment_id,
                current=self.delivery_verified.value,
                expected=DeliveryVerified.YES.value
            )
        return {
            "payment_status": PaymentStatus.RELEASED,
            "release_date": datetime.utcnow(),
            "reference_id": reference_id.strip(),
            "released_by": released_by,
        }


def po_delivery_verified(po: PurchaseOrder, grns: Iterable[GoodsReceiptNote]) -> DeliveryVerified:
    """
    Delivery outcome of a whole PO: the latest GRN line of every PO line,
    aggregated like the lines of a single GRN. A line counts as Ok only
    when its latest receipt is Ok and the accepted units of all its
    receipts cover the confirmed quantity. A line nobody has verified
    yet counts as not Ok.
    """
    latest = {}
    accepted = {}
    for grn in sorted(grns, key=lambda g: (g.received_at, g.created_at)):
        for line in grn.items:
            latest[line.po_line_id] = line.item_status
            accepted[line.po_line_id] = accepted.get(line.po_line_id, 0) + accepted_qty(line)

    statuses = []
    for line in po.items:
        status = latest.get(line.po_line_id, GRNItemStatus.QUANTITY_MISMATCH)
        if status == GRNItemStatus.OK and accepted[line.po_line_id] < line.confirmed_qty:
            status = GRNItemStatus.QUANTITY_MISMATCH
        statuses.append(status)
    if not statuses:
        return DeliveryVerified.NO
    return delivery_from_grn_status(aggregate_grn_status(statuses))
