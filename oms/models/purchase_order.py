from datetime import datetime
from typing import Iterable, List, Optional
from pydantic import BaseModel, Field
from oms.errors import IneligibleAssignmentError
from oms.models.base import VersionedDocument, new_id, AssignmentId, OrderId, OrderItemId, POLineId, PONumber, VendorId
from oms.models.assignment import Assignment
from oms.models.enums import AssignmentStatus, POStatus

class POLine(BaseModel):
    po_line_id: POLineId
    assignment_id: AssignmentId
    order_item_id: OrderItemId
    product_sku: str
    confirmed_qty: int = Field(..., gt=0)
    unit_price: float = Field(..., ge=0)
    line_total: float = Field(..., ge=0)

class PurchaseOrder(VersionedDocument):
    """
    Operations' commitment to one vendor for the confirmed quantities of
    one order. At most one exists per (order_id, vendor_id).
    """
    po_number: PONumber = Field(..., description="Unique PO number")
    order_id: OrderId
    vendor_id: VendorId

    po_status: POStatus = Field(default=POStatus.PENDING)
    items: List[POLine] = []
    total_amount: float = 0.0

    generated_at: Optional[datetime] = None
    generated_by: Optional[str] = None
    dispatch_seq: int = 0

    def get_line(self, po_line_id: str) -> Optional[POLine]:
        return next((line for line in self.items if line.po_line_id == po_line_id), None)


def eligible_assignments(order_id: str, vendor_id: str, assignments: Iterable[Assignment]) -> List[Assignment]:
    """
    Select the assignments a PO for (order, vendor) is built from.

    Any Pending assignment blocks generation. Declined and NotAvailable
    ones are left out. At least one confirmed assignment is required.
    """
    own = [a for a in assignments if a.order_id == order_id and a.vendor_id == vendor_id]
    pending = [a.assignment_id for a in own if a.status == AssignmentStatus.PENDING]
    if pending:
        raise IneligibleAssignmentError(
            f"Assignments still awaiting vendor confirmation: {', '.join(pending)}",
            entity="Order",
            entity_id=order_id,
            current=AssignmentStatus.PENDING.value,
            expected=[AssignmentStatus.CONFIRMED.value, AssignmentStatus.PARTIALLY_CONFIRMED.value]
        )
    confirmed = [a for a in own if a.status.is_confirmed]
    if not confirmed:
        raise IneligibleAssignmentError(
            f"No confirmed assignments for vendor {vendor_id} on order {order_id}",
            entity="Order",
            entity_id=order_id,
            expected=[AssignmentStatus.CONFIRMED.value, AssignmentStatus.PARTIALLY_CONFIRMED.value]
        )
    return confirmed


def build_po_lines(assignments: Iterable[Assignment]) -> List[POLine]:
    return [
        POLine(
            po_line_id=new_id("POL"),
            assignment_id=a.assignment_id,
            order_item_id=a.order_item_id,
            product_sku=a.product_sku,
            confirmed_qty=a.confirmed_qty,
            unit_price=a.unit_price,
            line_total=round(a.confirmed_qty * a.unit_price, 2),
        )
        for a in assignments
    ]
