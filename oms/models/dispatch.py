from datetime import datetime, timezone
from typing import Iterable, Optional
from pydantic import BaseModel, Field, field_validator
from oms.models.base import VersionedDocument, DispatchId, PONumber, POLineId, VendorId
from oms.models.grn import GoodsReceiptNote, accepted_qty

class LogisticsDetails(BaseModel):
    """Carrier details supplied by the vendor. Both blank means a local hand-off."""
    awb_number: Optional[str] = None
    logistics_partner: Optional[str] = None
    dispatch_date: Optional[datetime] = None
    estimated_delivery_date: Optional[datetime] = None
    remarks: Optional[str] = None

    @field_validator("dispatch_date", "estimated_delivery_date")
    @classmethod
    def as_naive_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # stored timestamps are naive UTC
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    @property
    def is_local_handoff(self) -> bool:
        return not (self.awb_number or "").strip() and not (self.logistics_partner or "").strip()

class Dispatch(VersionedDocument):
    """
    A vendor shipment against one PO line.
    Re-dispatch creates a new record; dispatches are never edited.
    """
    dispatch_id: DispatchId = Field(..., description="Unique ID (DSP-XXXXXXXXXX)")
    po_number: PONumber
    po_line_id: POLineId
    vendor_id: VendorId

    dispatched_qty: int = Field(..., gt=0)
    awb_number: str
    logistics_partner: str
    dispatch_date: datetime = Field(default_factory=datetime.utcnow)
    estimated_delivery_date: Optional[datetime] = None
    remarks: Optional[str] = None


def committed_qty(po_line_id: POLineId, dispatches: Iterable[Dispatch], grns: Iterable[GoodsReceiptNote]) -> int:
    """
    Units of a PO line already shipped and not sent back for re-delivery.

    A dispatch still waiting for its GRN counts in full. Once received it
    counts only what the GRN accepted, so shortages and damaged goods can
    be dispatched again.
    """
    accepted = {}
    for grn in grns:
        for line in grn.items:
            if line.po_line_id == po_line_id:
                accepted[grn.dispatch_id] = accepted_qty(line)
    return sum(
        accepted.get(d.dispatch_id, d.dispatched_qty)
        for d in dispatches if d.po_line_id == po_line_id
    )
