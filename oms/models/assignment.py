from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import Field, computed_field, model_validator
from oms.errors import AlreadyDecidedError, ValidationError
from oms.models.base import VersionedDocument, AssignmentId, OrderId, OrderItemId, VendorId
from oms.models.enums import AssignmentStatus, DeclineReason

class Assignment(VersionedDocument):
    """
    A vendor's claim on one order item.

    Created Pending and decided exactly once by the vendor (full, partial,
    decline) or by operations (not available). A decided assignment is
    never edited; the open remainder goes to a new assignment that
    references it through `supersedes`.
    """
    assignment_id: AssignmentId = Field(..., description="Unique ID (ASG-XXXXXXXXXX)")
    order_id: OrderId
    order_item_id: OrderItemId
    vendor_id: VendorId
    product_sku: str
    unit_price: float = Field(0.0, ge=0)

    requested_qty: int = Field(..., gt=0)
    confirmed_qty: int = Field(0, ge=0)
    status: AssignmentStatus = Field(default=AssignmentStatus.PENDING)

    decline_reason: Optional[DeclineReason] = None
    remarks: Optional[str] = None
    supersedes: Optional[str] = None

    decided_at: Optional[datetime] = None
    decided_by: Optional[str] = None

    @computed_field
    @property
    def backorder_qty(self) -> int:
        return self.requested_qty - self.confirmed_qty

    @model_validator(mode="after")
    def check_quantities(self):
        if self.confirmed_qty > self.requested_qty:
            raise ValueError("confirmed_qty cannot exceed requested_qty")
        if (self.status == AssignmentStatus.DECLINED) != (self.decline_reason is not None):
            raise ValueError("decline_reason is required iff the assignment is declined")
        return self

    # Transitions. Each returns the field changes to persist and leaves
    # the instance untouched; the service writes them under a version check.

    def confirm_full(self, decided_by: str) -> Dict[str, Any]:
        self.require_pending()
        return self._decision(AssignmentStatus.CONFIRMED, self.requested_qty, decided_by)

    def confirm_partial(self, available_qty: int, decided_by: str) -> Dict[str, Any]:
        self.require_pending()
        if available_qty <= 0:
            raise ValidationError(
                "Available quantity must be positive",
                entity="Assignment", entity_id=self.assignment_id
            )
        if available_qty == self.requested_qty:
            raise ValidationError(
                "Available quantity equals the requested quantity; confirm in full instead",
                entity="Assignment", entity_id=self.assignment_id
            )
        if available_qty > self.requested_qty:
            raise ValidationError(
                f"Available quantity {available_qty} exceeds requested quantity {self.requested_qty}",
                entity="Assignment", entity_id=self.assignment_id
            )
        return self._decision(AssignmentStatus.PARTIALLY_CONFIRMED, available_qty, decided_by)

    def decline(self, reason: Any, decided_by: str, remarks: Optional[str] = None) -> Dict[str, Any]:
        self.require_pending()
        if not reason:
            raise ValidationError(
                "A decline reason is required",
                entity="Assignment", entity_id=self.assignment_id,
                expected=[r.value for r in DeclineReason]
            )
        try:
            reason = DeclineReason(reason)
        except ValueError:
            raise ValidationError(
                f"Unknown decline reason '{reason}'",
                entity="Assignment", entity_id=self.assignment_id,
                expected=[r.value for r in DeclineReason]
            )
        changes = self._decision(AssignmentStatus.DECLINED, 0, decided_by)
        changes["decline_reason"] = reason
        if remarks:
            changes["remarks"] = remarks
        return changes

    def mark_not_available(self, decided_by: str, remarks: Optional[str] = None) -> Dict[str, Any]:
        self.require_pending()
        changes = self._decision(AssignmentStatus.NOT_AVAILABLE, 0, decided_by)
        if remarks:
            changes["remarks"] = remarks
        return changes

    def require_pending(self):
        if self.status.is_decided:
            raise AlreadyDecidedError(
                f"Assignment {self.assignment_id} was already decided as {self.status.value}; "
                f"create a new assignment to re-assign the quantity",
                entity="Assignment",
                entity_id=self.assignment_id,
                current=self.status.value,
                expected=AssignmentStatus.PENDING.value
            )

    def _decision(self, status: AssignmentStatus, confirmed_qty: int, decided_by: str) -> Dict[str, Any]:
        return {
            "status": status,
            "confirmed_qty": confirmed_qty,
            "decided_at": datetime.utcnow(),
            "decided_by": decided_by,
        }
