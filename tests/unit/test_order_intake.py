import pytest

from oms.database import db
from oms.errors import ConcurrentModificationError, InvalidStateError, NotFoundError, ValidationError
from oms.models.enums import AssignmentStatus, OrderItemStatus
from oms.models.order import item_status, open_quantity
from oms.services.assignment import assignment_service
from oms.services.order import NewOrderItem, order_service


@pytest.mark.asyncio
async def test_create_order_assigns_item_ids(fake_db):
    order = await order_service.create_order(
        "KY-1",
        "Client",
        [
            NewOrderItem(product_sku="A", requested_qty=10, unit_price=5.0),
            NewOrderItem(product_sku="B", requested_qty=3),
        ]
    )
    assert order.order_id.startswith("ORD-")
    assert [i.order_item_id[:3] for i in order.items] == ["OI-", "OI-"]

    stored = await db.orders.get(order.order_id)
    assert stored.order_number == "KY-1"
    assert stored.version == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("items", [
    [],
    [NewOrderItem(product_sku="A", requested_qty=0)],
    [NewOrderItem(product_sku="A", requested_qty=1, unit_price=-1.0)],
    [NewOrderItem(product_sku="A", requested_qty=1), NewOrderItem(product_sku="A", requested_qty=2)],
])
async def test_create_order_validation(fake_db, items):
    with pytest.raises(ValidationError):
        await order_service.create_order("KY-2", "Client", items)


@pytest.mark.asyncio
async def test_assign_defaults_to_open_quantity(lifecycle):
    order = await lifecycle.order()
    item = order.items[0]

    assignment = await order_service.assign_vendor(item.order_item_id, "V001")
    assert assignment.requested_qty == 100
    assert assignment.status == AssignmentStatus.PENDING
    assert assignment.unit_price == 50.0

    # The pending assignment holds the whole item.
    with pytest.raises(ValidationError):
        await order_service.assign_vendor(item.order_item_id, "V002", qty=1)


@pytest.mark.asyncio
async def test_split_assignment_across_vendors(lifecycle):
    order = await lifecycle.order()
    item = order.items[0]

    await order_service.assign_vendor(item.order_item_id, "V001", qty=70)
    second = await order_service.assign_vendor(item.order_item_id, "V002")
    assert second.requested_qty == 30

    with pytest.raises(ValidationError):
        await order_service.assign_vendor(item.order_item_id, "V003", qty=1)


@pytest.mark.asyncio
async def test_backorder_reassigned_with_supersedes(lifecycle):
    order = await lifecycle.order()
    item = order.items[0]
    [partial] = await lifecycle.confirmed(order, confirm=60)

    follow_up = await order_service.assign_vendor(item.order_item_id, "V002", supersedes=partial.assignment_id)
    assert follow_up.requested_qty == 40
    assert follow_up.supersedes == partial.assignment_id

    # The decided assignment is untouched.
    original = await db.assignments.get(partial.assignment_id)
    assert original.confirmed_qty == 60
    assert original.status == AssignmentStatus.PARTIALLY_CONFIRMED

    view = await order_service.get_order_view(order.order_id)
    assert view["items"][0]["status"] == OrderItemStatus.PENDING
    assert view["items"][0]["open_qty"] == 0


@pytest.mark.asyncio
async def test_supersedes_must_be_decided_and_same_item(lifecycle):
    order = await lifecycle.order(("A", 10, 1.0), ("B", 10, 1.0))
    a = await order_service.assign_vendor(order.items[0].order_item_id, "V001", qty=5)

    with pytest.raises(InvalidStateError):
        await order_service.assign_vendor(order.items[0].order_item_id, "V002", qty=5, supersedes=a.assignment_id)

    await assignment_service.decline(a.assignment_id, "StockUnavailable")
    with pytest.raises(ValidationError):
        await order_service.assign_vendor(order.items[1].order_item_id, "V002", supersedes=a.assignment_id)


@pytest.mark.asyncio
async def test_declined_quantity_is_open_again(lifecycle):
    order = await lifecycle.order()
    item = order.items[0]
    a = await order_service.assign_vendor(item.order_item_id, "V001")
    await assignment_service.decline(a.assignment_id, "PriceMismatch")

    again = await order_service.assign_vendor(item.order_item_id, "V002", supersedes=a.assignment_id)
    assert again.requested_qty == 100


@pytest.mark.asyncio
async def test_unknown_item(fake_db):
    with pytest.raises(NotFoundError):
        await order_service.assign_vendor("OI-MISSING", "V001")


@pytest.mark.asyncio
async def test_concurrent_assignment_conflicts_on_order_version(lifecycle, monkeypatch):
    order = await lifecycle.order()
    item = order.items[0]
    stale_order = await db.orders.get(order.order_id)

    await order_service.assign_vendor(item.order_item_id, "V001", qty=60)

    # Second request read the order (and open quantity) before the first one wrote.
    async def stale_get_by_item(order_item_id):
        return stale_order
    async def no_assignments(order_item_id):
        return []
    monkeypatch.setattr(db.orders, "get_by_item", stale_get_by_item)
    monkeypatch.setattr(db.assignments, "list_for_item", no_assignments)

    with pytest.raises(ConcurrentModificationError):
        await order_service.assign_vendor(item.order_item_id, "V002", qty=60)
    assert len(await db.assignments.list_for_order(order.order_id)) == 1


@pytest.mark.asyncio
async def test_item_projection_follows_latest_assignment(lifecycle):
    order = await lifecycle.order()
    item = order.items[0]
    assert item_status(item.order_item_id, []) == OrderItemStatus.UNASSIGNED

    a = await order_service.assign_vendor(item.order_item_id, "V001")
    await assignment_service.mark_not_available(a.assignment_id, remarks="no stock anywhere")
    assignments = await db.assignments.list_for_item(item.order_item_id)

    assert item_status(item.order_item_id, assignments) == OrderItemStatus.NOT_AVAILABLE
    assert open_quantity(item, assignments) == 100
