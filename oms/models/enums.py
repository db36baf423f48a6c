from enum import Enum

class AssignmentStatus(str, Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    PARTIALLY_CONFIRMED = "PartiallyConfirmed"
    DECLINED = "Declined"
    NOT_AVAILABLE = "NotAvailable"

    @property
    def is_decided(self) -> bool:
        return self is not AssignmentStatus.PENDING

    @property
    def is_confirmed(self) -> bool:
        return self in (AssignmentStatus.CONFIRMED, AssignmentStatus.PARTIALLY_CONFIRMED)

class DeclineReason(str, Enum):
    STOCK_UNAVAILABLE = "StockUnavailable"
    QUALITY_ISSUE = "QualityIssue"
    PRICE_MISMATCH = "PriceMismatch"
    LATE_DELIVERY = "LateDelivery"
    OTHER = "Other"

class OrderItemStatus(str, Enum):
    UNASSIGNED = "Unassigned"
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    PARTIALLY_CONFIRMED = "PartiallyConfirmed"
    DECLINED = "Declined"
    NOT_AVAILABLE = "NotAvailable"

class OrderStatus(str, Enum):
    RECEIVED = "Received"
    CONFIRMED = "Confirmed"
    AWAITING_PO = "AwaitingPO"
    PO_GENERATED = "POGenerated"
    DELIVERED = "Delivered"
    CLOSED = "Closed"

class POStatus(str, Enum):
    PENDING = "Pending"
    GENERATED = "Generated"

class GRNStatus(str, Enum):
    PENDING_VERIFICATION = "PendingVerification"
    VERIFIED_OK = "VerifiedOk"
    VERIFIED_MISMATCH = "VerifiedMismatch"
    PARTIALLY_VERIFIED = "PartiallyVerified"

class GRNItemStatus(str, Enum):
    OK = "Ok"
    SHORTAGE_REPORTED = "ShortageReported"
    DAMAGE_REPORTED = "DamageReported"
    QUANTITY_MISMATCH = "QuantityMismatch"
    EXCESS_RECEIVED = "ExcessReceived"

class InvoiceStatus(str, Enum):
    PENDING_VERIFICATION = "PendingVerification"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    PAID = "Paid"

class AttachmentKind(str, Enum):
    VENDOR = "vendor"
    ACCOUNTS = "accounts"

class DeliveryVerified(str, Enum):
    YES = "Yes"
    NO = "No"
    PARTIAL = "Partial"

class PaymentStatus(str, Enum):
    PENDING = "Pending"
    RELEASED = "Released"
    OVERDUE = "Overdue"  # display only, never stored
