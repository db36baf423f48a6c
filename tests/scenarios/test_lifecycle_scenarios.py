import io
from datetime import datetime, timedelta

import pytest

from oms.database import db
from oms.errors import DeliveryNotVerifiedError, InvalidStateError
from oms.models.enums import (
    AssignmentStatus, DeliveryVerified, GRNItemStatus, GRNStatus, InvoiceStatus, PaymentStatus
)
from oms.services.assignment import assignment_service
from oms.services.invoice import invoice_service
from oms.services.order import order_service
from oms.services.payment import payment_service


@pytest.mark.asyncio
async def test_scenario_a_partial_confirmation_is_final(lifecycle):
    """
    Scenario A: vendor confirms 60 of 100, then tries to confirm in full.
    """
    order = await lifecycle.order()
    assignment = await order_service.assign_vendor(order.items[0].order_item_id, "V001")

    partial = await assignment_service.confirm_partial(assignment.assignment_id, 60)
    assert partial.status == AssignmentStatus.PARTIALLY_CONFIRMED
    assert partial.confirmed_qty == 60

    with pytest.raises(InvalidStateError):
        await assignment_service.confirm_full(assignment.assignment_id)

    stored = await assignment_service.get(assignment.assignment_id)
    assert stored.status == AssignmentStatus.PARTIALLY_CONFIRMED
    assert stored.confirmed_qty == 60


async def _short_delivery(lifecycle):
    order, po = await lifecycle.po(confirm=60)
    dispatch = await lifecycle.dispatch(po, qty=60)
    grn = await lifecycle.receive(dispatch, received=55)
    return po, grn


@pytest.mark.asyncio
async def test_scenario_b_shortage_blocks_delivery(lifecycle):
    """
    Scenario B: PO for 60 units, 60 dispatched, 55 received.
    """
    po, grn = await _short_delivery(lifecycle)

    assert grn.items[0].item_status == GRNItemStatus.SHORTAGE_REPORTED
    assert grn.items[0].discrepancy_quantity == -5
    assert grn.grn_status == GRNStatus.VERIFIED_MISMATCH

    payment = await db.payments.get_for_po(po.po_number)
    assert payment.delivery_verified == DeliveryVerified.NO
    with pytest.raises(DeliveryNotVerifiedError):
        await payment_service.release(payment.payment_id, "UTR-1")


@pytest.mark.asyncio
async def test_scenario_c_amount_edit_unblocks_release(lifecycle):
    """
    Scenario C: accounts accept the shortage at a corrected amount and release.
    """
    po, grn = await _short_delivery(lifecycle)
    payment = await db.payments.get_for_po(po.po_number)
    new_amount = round(5000 * 0.55 / 0.60, 2)

    edited = await payment_service.edit_amount(payment.payment_id, new_amount, "shortage", new_delivery_status="Yes")
    assert edited.invoice_amount == 4583.33
    assert edited.delivery_verified == DeliveryVerified.YES

    await lifecycle.approved_invoice(po)
    released = await payment_service.release(payment.payment_id, "UTR-1")
    assert released.payment_status == PaymentStatus.RELEASED
    assert released.reference_id == "UTR-1"
    assert released.invoice_amount == 4583.33


@pytest.mark.asyncio
async def test_scenario_d_partially_verified_po_stays_pending(lifecycle):
    """
    Scenario D: one PO line arrives intact, the other short.
    """
    order, po = await lifecycle.po(items=[("SKU-1", 10, 10.0), ("SKU-2", 10, 20.0)])
    await lifecycle.receive(await lifecycle.dispatch(po, line_index=0))
    await lifecycle.receive(await lifecycle.dispatch(po, line_index=1), received=8)
    await lifecycle.approved_invoice(po)

    payment = await db.payments.get_for_po(po.po_number)
    assert payment.delivery_verified == DeliveryVerified.PARTIAL
    with pytest.raises(DeliveryNotVerifiedError):
        await payment_service.release(payment.payment_id, "UTR-1")

    payment = await payment_service.get(payment.payment_id)
    assert payment.payment_status == PaymentStatus.PENDING

    await payment_service.set_due_date(payment.invoice_id, datetime.utcnow() - timedelta(days=8))
    payment = await payment_service.get(payment.payment_id)
    assert payment.display_status == PaymentStatus.OVERDUE
    assert payment.payment_status == PaymentStatus.PENDING


@pytest.mark.asyncio
async def test_scenario_e_rejected_invoice_is_reuploaded(lifecycle):
    """
    Scenario E: accounts reject the vendor invoice, the vendor uploads a corrected copy.
    """
    order, po = await lifecycle.po()
    invoice = await db.invoices.get_for_po(po.po_number)
    await invoice_service.upload_vendor_invoice(invoice.invoice_id, "inv-1.pdf", io.BytesIO(b"%PDF-1"))

    rejected = await invoice_service.reject(invoice.invoice_id, "amount mismatch")
    assert rejected.invoice_status == InvoiceStatus.REJECTED
    assert rejected.can_reupload

    corrected = await invoice_service.upload_vendor_invoice(invoice.invoice_id, "inv-1-fixed.pdf", io.BytesIO(b"%PDF-2"))
    assert corrected.invoice_id == invoice.invoice_id
    assert corrected.invoice_status == InvoiceStatus.PENDING_VERIFICATION
    assert corrected.rejection_reason is None
    assert corrected.vendor_attachment.file_name == "inv-1-fixed.pdf"
    assert corrected.rejections[0].reason == "amount mismatch"
    assert await db.invoices.count({"po_number": po.po_number}) == 1
