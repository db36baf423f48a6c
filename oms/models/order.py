from typing import TYPE_CHECKING, Iterable, List, Optional
from pydantic import BaseModel, Field
from oms.models.base import VersionedDocument, OrderId, OrderItemId
from oms.models.enums import AssignmentStatus, OrderItemStatus

if TYPE_CHECKING:
    from oms.models.assignment import Assignment

class OrderItem(BaseModel):
    """One requested line of a client order."""
    order_item_id: OrderItemId
    product_sku: str
    product_name: Optional[str] = None
    requested_qty: int = Field(..., gt=0)
    unit_price: float = Field(0.0, ge=0)

class Order(VersionedDocument):
    """
    Client order as received. Items are immutable once assignments exist;
    everything status-like about an order is derived elsewhere.
    """
    order_id: OrderId = Field(..., description="Unique internal ID (ORD-XXXXXXXXXX)")
    order_number: str = Field(..., description="Client-facing order number")
    client_name: str
    items: List[OrderItem] = []
    assignment_seq: int = 0

    def get_item(self, order_item_id: str) -> Optional[OrderItem]:
        return next((i for i in self.items if i.order_item_id == order_item_id), None)


def open_quantity(item: OrderItem, assignments: Iterable["Assignment"]) -> int:
    """
    Quantity of an order item not yet held by a vendor.
    Pending assignments hold their full request, confirmed ones their
    confirmed quantity; declined and not-available ones hold nothing.
    """
    held = 0
    for a in assignments:
        if a.order_item_id != item.order_item_id:
            continue
        if a.status == AssignmentStatus.PENDING:
            held += a.requested_qty
        elif a.status.is_confirmed:
            held += a.confirmed_qty
    return max(0, item.requested_qty - held)


def item_status(order_item_id: str, assignments: Iterable["Assignment"]) -> OrderItemStatus:
    """Projection of the item's most recent assignment."""
    own = [a for a in assignments if a.order_item_id == order_item_id]
    if not own:
        return OrderItemStatus.UNASSIGNED
    # stable sort: on equal timestamps the later-created assignment wins
    latest = sorted(own, key=lambda a: a.created_at)[-1]
    return OrderItemStatus(latest.status.value)
