import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from oms.database import db
from oms.errors import InvalidStateError, NotFoundError, ValidationError
from oms.guardrails.audit_logger import audit_logger, SYSTEM_ACTOR
from oms.models.assignment import Assignment
from oms.models.audit import Actor
from oms.models.base import new_id, OrderId, OrderItemId, VendorId
from oms.models.enums import AssignmentStatus
from oms.models.order import Order, OrderItem, item_status, open_quantity
from oms.services.base import LifecycleService
from oms.tools.notification_tool import notification_tool

logger = logging.getLogger(__name__)

class NewOrderItem(BaseModel):
    product_sku: str
    product_name: Optional[str] = None
    requested_qty: int
    unit_price: float = 0.0

class OrderService(LifecycleService):
    """Order intake and vendor assignment (the start of every lifecycle)."""

    async def create_order(self,
                           order_number: str,
                           client_name: str,
                           items: List[NewOrderItem],
                           actor: Actor = SYSTEM_ACTOR) -> Order:
        if not order_number or not client_name:
            raise ValidationError("Order number and client name are required", entity="Order")
        if not items:
            raise ValidationError("An order needs at least one item", entity="Order")

        seen = set()
        for item in items:
            if item.requested_qty <= 0:
                raise ValidationError(
                    f"Requested quantity for {item.product_sku} must be positive", entity="Order"
                )
            if item.unit_price < 0:
                raise ValidationError(
                    f"Unit price for {item.product_sku} cannot be negative", entity="Order"
                )
            if item.product_sku in seen:
                raise ValidationError(f"Duplicate SKU {item.product_sku} in order", entity="Order")
            seen.add(item.product_sku)

        order = Order(
            order_id=new_id("ORD"),
            order_number=order_number,
            client_name=client_name,
            items=[
                OrderItem(order_item_id=new_id("OI"), **item.model_dump())
                for item in items
            ],
        )
        await db.orders.create(order)
        await audit_logger.log_transition(
            "Order", order.order_id, None, "Received", actor=actor,
            details=f"Order {order_number} received with {len(items)} item(s)"
        )
        logger.info(f"Order {order.order_id} ({order_number}) created")
        return order

    async def assign_vendor(self,
                            order_item_id: OrderItemId,
                            vendor_id: VendorId,
                            qty: Optional[int] = None,
                            supersedes: Optional[str] = None,
                            actor: Actor = SYSTEM_ACTOR) -> Assignment:
        """
        Open a Pending assignment for (part of) an item's open quantity.
        With `supersedes`, this is the new cycle for a decided assignment's
        backorder or declined quantity.
        """
        if not vendor_id:
            raise ValidationError("A vendor is required", entity="OrderItem", entity_id=order_item_id)

        order = await db.orders.get_by_item(order_item_id)
        if order is None:
            raise NotFoundError(f"Order item {order_item_id} not found", entity="OrderItem", entity_id=order_item_id)
        item = order.get_item(order_item_id)
        existing = await db.assignments.list_for_item(order_item_id)

        if supersedes:
            previous = next((a for a in existing if a.assignment_id == supersedes), None)
            if previous is None:
                raise ValidationError(
                    f"Assignment {supersedes} does not belong to item {order_item_id}",
                    entity="Assignment", entity_id=supersedes
                )
            if previous.status == AssignmentStatus.PENDING:
                raise InvalidStateError(
                    f"Assignment {supersedes} is still pending; it can only be superseded once decided",
                    entity="Assignment",
                    entity_id=supersedes,
                    current=previous.status.value,
                    expected="decided"
                )

        available = open_quantity(item, existing)
        if qty is None:
            qty = available
        if qty <= 0 or qty > available:
            raise ValidationError(
                f"Quantity {qty} not assignable; open quantity for {item.product_sku} is {available}",
                entity="OrderItem",
                entity_id=order_item_id
            )

        # Bump the order so two concurrent assignments of the same item
        # cannot both pass the open-quantity check on the same read.
        await self._transition(
            db.orders, "Order", order, lambda o: {},
            changes={"assignment_seq": order.assignment_seq + 1}
        )

        assignment = Assignment(
            assignment_id=new_id("ASG"),
            order_id=order.order_id,
            order_item_id=order_item_id,
            vendor_id=vendor_id,
            product_sku=item.product_sku,
            unit_price=item.unit_price,
            requested_qty=qty,
            supersedes=supersedes,
        )
        await db.assignments.create(assignment)
        await audit_logger.log_transition(
            "Assignment", assignment.assignment_id, None, AssignmentStatus.PENDING, actor=actor,
            details=f"Assigned {qty} x {item.product_sku} to vendor {vendor_id}",
            related={"order_id": order.order_id, **({"supersedes": supersedes} if supersedes else {})}
        )
        await notification_tool.notify_vendor(
            vendor_id,
            "New order assignment",
            f"{qty} x {item.product_sku} assigned for order {order.order_number}; please confirm availability."
        )
        logger.info(f"Assignment {assignment.assignment_id} created for item {order_item_id} ({qty} units)")
        return assignment

    async def get_order_view(self, order_id: OrderId) -> Dict[str, Any]:
        order = await self._load(db.orders, order_id, "Order")
        assignments = await db.assignments.list_for_order(order_id)
        return {
            "order": order,
            "items": [
                {
                    **item.model_dump(),
                    "status": item_status(item.order_item_id, assignments),
                    "open_qty": open_quantity(item, assignments),
                }
                for item in order.items
            ],
            "assignments": assignments,
        }

order_service = OrderService()
