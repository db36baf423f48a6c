from datetime import datetime
from typing import Iterable, List, Optional
from pydantic import BaseModel, Field
from oms.models.base import VersionedDocument, DispatchId, GRNNumber, PONumber, POLineId, VendorId
from oms.models.enums import DeliveryVerified, GRNItemStatus, GRNStatus

class ReceiptResult(BaseModel):
    """What operations counted for one dispatched PO line."""
    po_line_id: POLineId
    received_qty: int = Field(..., ge=0)
    damage_reported: bool = False
    damage_description: Optional[str] = None
    remarks: Optional[str] = None

class GRNLine(BaseModel):
    po_line_id: POLineId
    dispatched_qty: int
    received_qty: int
    discrepancy_quantity: int = Field(..., description="received - dispatched; negative is a shortage")
    damage_reported: bool = False
    damage_description: Optional[str] = None
    item_status: GRNItemStatus
    rejection_reason: Optional[str] = None
    remarks: Optional[str] = None

class GRNAnnotation(BaseModel):
    """Explicit note left on a GRN by a later correction (never edits its lines)."""
    note: str
    delivery_status: Optional[DeliveryVerified] = None
    source: str
    created_by: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

class GoodsReceiptNote(VersionedDocument):
    """
    Goods Receipt Note (GRN) document.
    Operations' one-shot verification of a dispatch. Append-only: a
    re-delivery is verified by a new dispatch and a new GRN.
    """
    grn_number: GRNNumber = Field(..., description="Unique GRN ID")
    dispatch_id: DispatchId
    po_number: PONumber
    vendor_id: VendorId

    grn_status: GRNStatus = Field(default=GRNStatus.PENDING_VERIFICATION)
    items: List[GRNLine] = []

    operator_remarks: Optional[str] = None
    received_at: datetime = Field(default_factory=datetime.utcnow)
    verified_at: Optional[datetime] = None
    verified_by: Optional[str] = None

    annotations: List[GRNAnnotation] = []


def classify_receipt(dispatched_qty: int, result: ReceiptResult) -> GRNLine:
    """
    Compare what arrived with what was dispatched.

    Damage outranks the quantity check, both in status and in the
    rejection text; the signed discrepancy is always kept.
    """
    discrepancy = result.received_qty - dispatched_qty

    if result.damage_reported:
        status = GRNItemStatus.DAMAGE_REPORTED
        reason = f"Damage reported: {result.damage_description or 'no description'}"
        if discrepancy:
            reason += f" (quantity discrepancy {discrepancy:+d})"
    elif discrepancy < 0:
        status = GRNItemStatus.SHORTAGE_REPORTED
        reason = f"Shortage of {-discrepancy} unit(s)"
    elif discrepancy > 0:
        status = GRNItemStatus.EXCESS_RECEIVED
        reason = f"Excess of {discrepancy} unit(s)"
    else:
        status = GRNItemStatus.OK
        reason = None

    return GRNLine(
        po_line_id=result.po_line_id,
        dispatched_qty=dispatched_qty,
        received_qty=result.received_qty,
        discrepancy_quantity=discrepancy,
        damage_reported=result.damage_reported,
        damage_description=result.damage_description,
        item_status=status,
        rejection_reason=reason,
        remarks=result.remarks,
    )


def accepted_qty(line: GRNLine) -> int:
    """Units of a receipt that count against the PO line. Damaged goods count for nothing."""
    if line.item_status == GRNItemStatus.DAMAGE_REPORTED:
        return 0
    return min(line.received_qty, line.dispatched_qty)


def aggregate_grn_status(item_statuses: Iterable[GRNItemStatus]) -> GRNStatus:
    statuses = list(item_statuses)
    if not statuses:
        return GRNStatus.PENDING_VERIFICATION
    ok = sum(1 for s in statuses if s == GRNItemStatus.OK)
    if ok == len(statuses):
        return GRNStatus.VERIFIED_OK
    if ok == 0:
        return GRNStatus.VERIFIED_MISMATCH
    return GRNStatus.PARTIALLY_VERIFIED


DELIVERY_BY_GRN_STATUS = {
    GRNStatus.VERIFIED_OK: DeliveryVerified.YES,
    GRNStatus.VERIFIED_MISMATCH: DeliveryVerified.NO,
    GRNStatus.PARTIALLY_VERIFIED: DeliveryVerified.PARTIAL,
    GRNStatus.PENDING_VERIFICATION: DeliveryVerified.NO,
}


def delivery_from_grn_status(status: Optional[GRNStatus]) -> DeliveryVerified:
    if status is None:
        return DeliveryVerified.NO
    return DELIVERY_BY_GRN_STATUS[status]
