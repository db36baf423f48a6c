import copy
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from oms.database import db, INDEXES
from oms.models.assignment import Assignment
from oms.models.audit import AuditEvent
from oms.models.dispatch import Dispatch, LogisticsDetails
from oms.models.grn import GoodsReceiptNote, ReceiptResult
from oms.models.invoice import AttachmentRef, Invoice
from oms.models.order import Order
from oms.models.payment import PaymentRecord
from oms.models.purchase_order import PurchaseOrder
from oms.repositories.assignment import AssignmentRepository
from oms.repositories.audit import AuditRepository
from oms.repositories.dispatch import DispatchRepository
from oms.repositories.grn import GRNRepository
from oms.repositories.invoice import InvoiceRepository
from oms.repositories.order import OrderRepository
from oms.repositories.payment import PaymentRepository
from oms.repositories.purchase_order import PurchaseOrderRepository
from oms.services.assignment import assignment_service
from oms.services.dispatch import dispatch_service
from oms.services.grn import grn_service
from oms.services.invoice import invoice_service
from oms.services.order import NewOrderItem, order_service
from oms.services.purchase_order import purchase_order_service
from oms.tools.notification_tool import notification_tool


def _resolve(doc, path):
    """Values at a dotted path, descending into arrays like Mongo does."""
    values = [doc]
    for part in path.split("."):
        found = []
        for value in values:
            if isinstance(value, dict) and part in value:
                item = value[part]
                if isinstance(item, list):
                    found.extend(item)
                else:
                    found.append(item)
        values = found
    return values


def _matches(doc, filter):
    for path, cond in (filter or {}).items():
        values = _resolve(doc, path)
        if isinstance(cond, dict) and "$in" in cond:
            if not any(v in cond["$in"] for v in values):
                return False
        elif cond not in values:
            return False
    return True


class FakeCursor:
    def __init__(self, docs):
        self.docs = docs

    def sort(self, keys):
        for field, direction in reversed(keys):
            self.docs.sort(
                key=lambda d: (d.get(field) is None, d.get(field)),
                reverse=direction < 0
            )
        return self

    def skip(self, n):
        self.docs = self.docs[n:]
        return self

    def limit(self, n):
        self.docs = self.docs[:n]
        return self

    async def to_list(self, length=None):
        return [copy.deepcopy(d) for d in self.docs[:length]]


class FakeCollection:
    """
    In-memory stand-in for a Motor collection: equality / $in filters,
    $set / $inc / $push updates and the unique indexes of `INDEXES`.
    """
    def __init__(self, name):
        self.name = name
        self.docs = []
        self.unique_keys = [
            [field for field, _ in index.document["key"].items()]
            for index in INDEXES.get(name, [])
            if index.document.get("unique")
        ]

    def _key(self, doc, fields):
        return tuple((_resolve(doc, f) or [None])[0] for f in fields)

    async def insert_one(self, data):
        data = copy.deepcopy(data)
        for fields in self.unique_keys:
            key = self._key(data, fields)
            if any(self._key(d, fields) == key for d in self.docs):
                raise DuplicateKeyError(f"E11000 duplicate key error collection: {self.name} index: {fields}")
        data.setdefault("_id", ObjectId())
        self.docs.append(data)
        return SimpleNamespace(inserted_id=data["_id"])

    async def find_one(self, filter):
        for doc in self.docs:
            if _matches(doc, filter):
                return copy.deepcopy(doc)
        return None

    def find(self, filter):
        return FakeCursor([d for d in self.docs if _matches(d, filter)])

    async def find_one_and_update(self, filter, update, return_document=None):
        for doc in self.docs:
            if _matches(doc, filter):
                doc.update(copy.deepcopy(update.get("$set", {})))
                for field, n in update.get("$inc", {}).items():
                    doc[field] = doc.get(field, 0) + n
                for field, item in update.get("$push", {}).items():
                    doc.setdefault(field, []).append(copy.deepcopy(item))
                return copy.deepcopy(doc)
        return None

    async def count_documents(self, filter):
        return len([d for d in self.docs if _matches(d, filter)])

    async def create_indexes(self, indexes):
        return [str(i) for i in range(len(indexes))]


@pytest.fixture
def fake_db(monkeypatch):
    """Point the global `db` at in-memory collections behind the real repositories."""
    collections = {name: FakeCollection(name) for name in INDEXES}
    monkeypatch.setattr(db, "db", collections, raising=False)
    monkeypatch.setattr(db, "orders", OrderRepository(collections["orders"], Order))
    monkeypatch.setattr(db, "assignments", AssignmentRepository(collections["assignments"], Assignment))
    monkeypatch.setattr(db, "purchase_orders", PurchaseOrderRepository(collections["purchase_orders"], PurchaseOrder))
    monkeypatch.setattr(db, "dispatches", DispatchRepository(collections["dispatches"], Dispatch))
    monkeypatch.setattr(db, "grns", GRNRepository(collections["goods_receipt_notes"], GoodsReceiptNote))
    monkeypatch.setattr(db, "invoices", InvoiceRepository(collections["invoices"], Invoice))
    monkeypatch.setattr(db, "payments", PaymentRepository(collections["payments"], PaymentRecord))
    monkeypatch.setattr(db, "audit", AuditRepository(collections["audit_log"], AuditEvent))

    fs = MagicMock()
    fs.upload_from_stream = AsyncMock(side_effect=lambda *args, **kwargs: ObjectId())
    monkeypatch.setattr(db, "fs", fs)
    yield db


@pytest.fixture
def notifications(monkeypatch):
    mock = SimpleNamespace(notify_vendor=AsyncMock(), notify_operations=AsyncMock())
    monkeypatch.setattr(notification_tool, "notify_vendor", mock.notify_vendor)
    monkeypatch.setattr(notification_tool, "notify_operations", mock.notify_operations)
    yield mock


class Lifecycle:
    """Drives documents through the real services for multi-step tests."""

    async def order(self, *items, order_number="ORD-TEST-1"):
        items = items or (("SKU-1", 100, 50.0),)
        return await order_service.create_order(
            order_number,
            "Test Client",
            [NewOrderItem(product_sku=sku, requested_qty=qty, unit_price=price) for sku, qty, price in items]
        )

    async def confirmed(self, order, vendor_id="V001", confirm=None):
        """Assign every item of the order to one vendor and confirm it (partially for `confirm` units)."""
        decided = []
        for item in order.items:
            assignment = await order_service.assign_vendor(item.order_item_id, vendor_id)
            if confirm is not None and confirm < assignment.requested_qty:
                decided.append(await assignment_service.confirm_partial(assignment.assignment_id, confirm))
            else:
                decided.append(await assignment_service.confirm_full(assignment.assignment_id))
        return decided

    async def po(self, items=None, confirm=None, vendor_id="V001"):
        order = await self.order(*(items or ()))
        await self.confirmed(order, vendor_id=vendor_id, confirm=confirm)
        po = await purchase_order_service.generate_po(order.order_id, vendor_id)
        return order, po

    async def dispatch(self, po, line_index=0, qty=None, **logistics):
        line = po.items[line_index]
        return await dispatch_service.create_dispatch(
            line.po_line_id, qty or line.confirmed_qty, LogisticsDetails(**logistics)
        )

    async def receive(self, dispatch, received=None, damage=False, description=None):
        return await grn_service.record_grn(
            dispatch.dispatch_id,
            [ReceiptResult(
                po_line_id=dispatch.po_line_id,
                received_qty=dispatch.dispatched_qty if received is None else received,
                damage_reported=damage,
                damage_description=description,
            )]
        )

    async def approved_invoice(self, po):
        invoice = await db.invoices.get_for_po(po.po_number)
        await invoice_service.attach_vendor_invoice(
            invoice.invoice_id, AttachmentRef(file_name="vendor.pdf", url="/api/attachments/v1")
        )
        return await invoice_service.approve(invoice.invoice_id)


@pytest.fixture
def lifecycle(fake_db, notifications):
    return Lifecycle()
