import logging
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorGridFSBucket
from pymongo import ASCENDING, DESCENDING, IndexModel
from oms.config import settings
from oms.repositories.order import OrderRepository
from oms.repositories.assignment import AssignmentRepository
from oms.repositories.purchase_order import PurchaseOrderRepository
from oms.repositories.dispatch import DispatchRepository
from oms.repositories.grn import GRNRepository
from oms.repositories.invoice import InvoiceRepository
from oms.repositories.payment import PaymentRepository
from oms.repositories.audit import AuditRepository
from oms.models.order import Order
from oms.models.assignment import Assignment
from oms.models.purchase_order import PurchaseOrder
from oms.models.dispatch import Dispatch
from oms.models.grn import GoodsReceiptNote
from oms.models.invoice import Invoice
from oms.models.payment import PaymentRecord
from oms.models.audit import AuditEvent

logger = logging.getLogger(__name__)

# Unique keys double as idempotency guards: one PO per (order, vendor),
# one GRN per dispatch, one invoice and one payment record per PO.
INDEXES = {
    "orders": [
        IndexModel([("order_id", ASCENDING)], unique=True),
        IndexModel([("order_number", ASCENDING)], unique=True),
        IndexModel([("items.order_item_id", ASCENDING)]),
    ],
    "assignments": [
        IndexModel([("assignment_id", ASCENDING)], unique=True),
        IndexModel([("order_id", ASCENDING), ("vendor_id", ASCENDING)]),
        IndexModel([("order_item_id", ASCENDING)]),
        IndexModel([("vendor_id", ASCENDING), ("status", ASCENDING)]),
    ],
    "purchase_orders": [
        IndexModel([("po_number", ASCENDING)], unique=True),
        IndexModel([("order_id", ASCENDING), ("vendor_id", ASCENDING)], unique=True),
        IndexModel([("items.po_line_id", ASCENDING)]),
    ],
    "dispatches": [
        IndexModel([("dispatch_id", ASCENDING)], unique=True),
        IndexModel([("po_number", ASCENDING)]),
    ],
    "goods_receipt_notes": [
        IndexModel([("grn_number", ASCENDING)], unique=True),
        IndexModel([("dispatch_id", ASCENDING)], unique=True),
        IndexModel([("po_number", ASCENDING)]),
    ],
    "invoices": [
        IndexModel([("invoice_id", ASCENDING)], unique=True),
        IndexModel([("po_number", ASCENDING)], unique=True),
        IndexModel([("vendor_id", ASCENDING), ("invoice_status", ASCENDING)]),
    ],
    "payments": [
        IndexModel([("payment_id", ASCENDING)], unique=True),
        IndexModel([("invoice_id", ASCENDING)], unique=True),
        IndexModel([("po_number", ASCENDING)]),
        IndexModel([("payment_status", ASCENDING), ("due_date", ASCENDING)]),
    ],
    "audit_log": [
        IndexModel([("event_id", ASCENDING)], unique=True),
        IndexModel([("entity_type", ASCENDING), ("entity_id", ASCENDING)]),
        IndexModel([("timestamp", DESCENDING)]),
    ],
}

class Database:
    client: AsyncIOMotorClient = None
    fs: AsyncIOMotorGridFSBucket = None
    
    # Repositories
    orders: OrderRepository = None
    assignments: AssignmentRepository = None
    purchase_orders: PurchaseOrderRepository = None
    dispatches: DispatchRepository = None
    grns: GRNRepository = None
    invoices: InvoiceRepository = None
    payments: PaymentRepository = None
    audit: AuditRepository = None
    
    def connect(self):
        """Initialize database connection and repositories."""
        self.client = AsyncIOMotorClient(settings.MONGODB_URL)
        self.db = self.client[settings.DB_NAME]
        self.fs = AsyncIOMotorGridFSBucket(self.db, bucket_name=settings.ATTACHMENT_BUCKET)
        
        # Initialize repositories with their respective collections and models
        self.orders = OrderRepository(self.db.orders, Order)
        self.assignments = AssignmentRepository(self.db.assignments, Assignment)
        self.purchase_orders = PurchaseOrderRepository(self.db.purchase_orders, PurchaseOrder)
        self.dispatches = DispatchRepository(self.db.dispatches, Dispatch)
        self.grns = GRNRepository(self.db.goods_receipt_notes, GoodsReceiptNote)
        self.invoices = InvoiceRepository(self.db.invoices, Invoice)
        self.payments = PaymentRepository(self.db.payments, PaymentRecord)
        self.audit = AuditRepository(self.db.audit_log, AuditEvent)
        
        logger.info("Connected to MongoDB database %s", settings.DB_NAME)

    async def ensure_indexes(self):
        for collection, indexes in INDEXES.items():
            await self.db[collection].create_indexes(indexes)
        logger.info("Indexes ensured on %d collections", len(INDEXES))
        
    def close(self):
        """Close database connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

db = Database()
