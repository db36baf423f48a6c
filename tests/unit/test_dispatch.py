from datetime import datetime, timedelta, timezone

import pytest

from oms.database import db
from oms.errors import InvalidStateError, NotFoundError, ValidationError
from oms.models.dispatch import LogisticsDetails
from oms.models.purchase_order import POLine, PurchaseOrder
from oms.services.dispatch import dispatch_service


@pytest.mark.asyncio
async def test_dispatch_defaults_to_local_porter(lifecycle, notifications):
    order, po = await lifecycle.po(confirm=60)

    dispatch = await lifecycle.dispatch(po)
    assert dispatch.dispatched_qty == 60
    assert dispatch.awb_number == "LOCAL-PORTER"
    assert dispatch.logistics_partner == "Local Porter"
    assert dispatch.vendor_id == "V001"

    notifications.notify_operations.assert_called()
    assert "local porter" in notifications.notify_operations.call_args[0][1]


@pytest.mark.asyncio
async def test_dispatch_keeps_carrier_details(lifecycle):
    order, po = await lifecycle.po()
    sent = datetime(2024, 5, 1, 9, 0)

    dispatch = await lifecycle.dispatch(
        po, qty=40, awb_number=" AWB123 ", logistics_partner="BlueDart",
        dispatch_date=sent, estimated_delivery_date=sent + timedelta(days=2)
    )
    assert dispatch.awb_number == "AWB123"
    assert dispatch.logistics_partner == "BlueDart"
    assert dispatch.dispatch_date == sent


@pytest.mark.asyncio
async def test_partial_redispatch_creates_new_records(lifecycle):
    order, po = await lifecycle.po()
    await lifecycle.dispatch(po, qty=30)
    await lifecycle.dispatch(po, qty=70)
    assert len(await dispatch_service.list_for_po(po.po_number)) == 2

    with pytest.raises(InvalidStateError):
        await lifecycle.dispatch(po, qty=1)


@pytest.mark.asyncio
async def test_dispatches_cannot_exceed_confirmed_quantity(lifecycle):
    order, po = await lifecycle.po()
    await lifecycle.dispatch(po, qty=60)

    with pytest.raises(ValidationError):
        await lifecycle.dispatch(po, qty=50)
    for _ in range(2):
        with pytest.raises(ValidationError):
            await lifecycle.dispatch(po, qty=100)

    dispatches = await dispatch_service.list_for_po(po.po_number)
    assert sum(d.dispatched_qty for d in dispatches) == 60


@pytest.mark.asyncio
async def test_shortfall_can_be_dispatched_again(lifecycle):
    order, po = await lifecycle.po(confirm=60)
    await lifecycle.receive(await lifecycle.dispatch(po), received=55)

    with pytest.raises(ValidationError):
        await lifecycle.dispatch(po, qty=6)
    redelivery = await lifecycle.dispatch(po, qty=5)
    assert redelivery.dispatched_qty == 5


@pytest.mark.asyncio
async def test_damaged_goods_can_be_dispatched_again_in_full(lifecycle):
    order, po = await lifecycle.po(confirm=60)
    await lifecycle.receive(await lifecycle.dispatch(po), damage=True, description="crushed")

    redelivery = await lifecycle.dispatch(po)
    assert redelivery.dispatched_qty == 60


@pytest.mark.asyncio
@pytest.mark.parametrize("qty", [0, -1, 61])
async def test_dispatch_quantity_bounds(lifecycle, qty):
    order, po = await lifecycle.po(confirm=60)
    with pytest.raises(ValidationError):
        await dispatch_service.create_dispatch(po.items[0].po_line_id, qty)


@pytest.mark.asyncio
async def test_eta_before_dispatch_date_is_rejected(lifecycle):
    order, po = await lifecycle.po()
    sent = datetime(2024, 5, 1)
    with pytest.raises(ValidationError):
        await dispatch_service.create_dispatch(
            po.items[0].po_line_id, 10,
            LogisticsDetails(dispatch_date=sent, estimated_delivery_date=sent - timedelta(days=1))
        )


@pytest.mark.asyncio
async def test_dispatch_requires_generated_po(fake_db):
    await db.purchase_orders.create(PurchaseOrder(
        po_number="PO-PENDING", order_id="ORD-1", vendor_id="V001",
        items=[POLine(po_line_id="POL-1", assignment_id="ASG-1", order_item_id="OI-1",
                      product_sku="SKU-1", confirmed_qty=5, unit_price=1.0, line_total=5.0)]
    ))
    with pytest.raises(InvalidStateError):
        await dispatch_service.create_dispatch("POL-1", 5)


@pytest.mark.asyncio
async def test_dispatch_unknown_line(fake_db):
    with pytest.raises(NotFoundError):
        await dispatch_service.create_dispatch("POL-MISSING", 5)


@pytest.mark.asyncio
async def test_timezone_aware_dates_are_stored_as_utc(lifecycle):
    order, po = await lifecycle.po()

    dispatch = await dispatch_service.create_dispatch(
        po.items[0].po_line_id, 10,
        LogisticsDetails(estimated_delivery_date=datetime(2030, 1, 1, tzinfo=timezone.utc))
    )
    assert dispatch.estimated_delivery_date == datetime(2030, 1, 1)

    ist = timezone(timedelta(hours=5, minutes=30))
    dispatch = await dispatch_service.create_dispatch(
        po.items[0].po_line_id, 10,
        LogisticsDetails(dispatch_date=datetime(2030, 1, 1, 5, 30, tzinfo=ist),
                         estimated_delivery_date=datetime(2030, 1, 2, tzinfo=timezone.utc))
    )
    assert dispatch.dispatch_date == datetime(2030, 1, 1, 0, 0)
