from oms.models.base import (
    MongoModel, VersionedDocument, new_id,
    OrderId, OrderItemId, VendorId, AssignmentId, PONumber, POLineId, DispatchId, GRNNumber, InvoiceId, PaymentId
)
from oms.models.enums import (
    AssignmentStatus, DeclineReason, OrderItemStatus, OrderStatus, POStatus,
    GRNStatus, GRNItemStatus, InvoiceStatus, AttachmentKind, DeliveryVerified, PaymentStatus
)
from oms.models.order import Order, OrderItem
from oms.models.assignment import Assignment
from oms.models.purchase_order import PurchaseOrder, POLine
from oms.models.dispatch import Dispatch, LogisticsDetails
from oms.models.grn import GoodsReceiptNote, GRNLine, GRNAnnotation, ReceiptResult
from oms.models.invoice import Invoice, AttachmentRef, RejectionEntry
from oms.models.payment import PaymentRecord, DeliveryOverride, AmountEdit
from oms.models.audit import AuditEvent, Action, Actor, ActionType
