"""
Seed a demo order and walk it up to a generated PO:
two items, one confirmed in full, one partially, one backorder re-assigned.
"""
import asyncio

from oms.config import settings
from oms.database import db
from oms.services.assignment import assignment_service
from oms.services.order import NewOrderItem, order_service
from oms.services.purchase_order import purchase_order_service

async def seed_db():
    print(f"Connecting to {settings.MONGODB_URL}...")
    db.connect()
    await db.ensure_indexes()

    print("Seeding Order...")
    order = await order_service.create_order(
        "KY-1001",
        "Green Leaf Nursery",
        [
            NewOrderItem(product_sku="POT-TERRA-8", product_name="Terracotta pot 8in", requested_qty=100, unit_price=50.0),
            NewOrderItem(product_sku="SOIL-MIX-5KG", product_name="Potting mix 5kg", requested_qty=40, unit_price=120.0),
        ]
    )

    print("Seeding Assignments...")
    pots, soil = order.items
    a1 = await order_service.assign_vendor(pots.order_item_id, "V001")
    a2 = await order_service.assign_vendor(soil.order_item_id, "V001")
    await assignment_service.confirm_partial(a1.assignment_id, 60)
    await assignment_service.confirm_full(a2.assignment_id)

    backorder = await order_service.assign_vendor(pots.order_item_id, "V002", supersedes=a1.assignment_id)
    print(f"Backorder of 40 re-assigned as {backorder.assignment_id}")

    print("Generating PO...")
    po = await purchase_order_service.generate_po(order.order_id, "V001")
    print(f"PO {po.po_number}: {len(po.items)} line(s), total {po.total_amount:.2f}")

    status = await purchase_order_service.order_status(order.order_id)
    print(f"Order {order.order_number} is {status.value}")

    print("Seeding complete.")
    db.close()

if __name__ == "__main__":
    asyncio.run(seed_db())
