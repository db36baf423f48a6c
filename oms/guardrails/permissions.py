from enum import Enum
import logging
from oms.api.auth import User
from oms.models.audit import Actor

logger = logging.getLogger(__name__)

class Permission(str, Enum):
    # Order intake
    CREATE_ORDER = "CREATE_ORDER"
    ASSIGN_VENDOR = "ASSIGN_VENDOR"
    VIEW_ORDER = "VIEW_ORDER"

    # Vendor actions
    DECIDE_ASSIGNMENT = "DECIDE_ASSIGNMENT"
    CREATE_DISPATCH = "CREATE_DISPATCH"
    UPLOAD_VENDOR_INVOICE = "UPLOAD_VENDOR_INVOICE"

    # Operations actions
    CLOSE_ASSIGNMENT = "CLOSE_ASSIGNMENT"
    GENERATE_PO = "GENERATE_PO"
    RECORD_GRN = "RECORD_GRN"

    # Accounts actions
    UPLOAD_ACCOUNTS_INVOICE = "UPLOAD_ACCOUNTS_INVOICE"
    REVIEW_INVOICE = "REVIEW_INVOICE"
    EDIT_PAYMENT_AMOUNT = "EDIT_PAYMENT_AMOUNT"
    RELEASE_PAYMENT = "RELEASE_PAYMENT"
    VIEW_PAYMENT = "VIEW_PAYMENT"

    # Admin
    VIEW_AUDIT = "VIEW_AUDIT"

class Role(str, Enum):
    ADMIN = "admin"
    OPERATIONS = "operations"
    ACCOUNTS = "accounts"
    VENDOR = "vendor"

# Role -> Permissions Mapping
ROLE_PERMISSIONS = {
    Role.ADMIN: [p for p in Permission], # All
    Role.OPERATIONS: [
        Permission.CREATE_ORDER, Permission.ASSIGN_VENDOR, Permission.VIEW_ORDER,
        Permission.CLOSE_ASSIGNMENT, Permission.GENERATE_PO, Permission.RECORD_GRN,
        Permission.VIEW_AUDIT
    ],
    Role.ACCOUNTS: [
        Permission.VIEW_ORDER, Permission.UPLOAD_ACCOUNTS_INVOICE, Permission.REVIEW_INVOICE,
        Permission.EDIT_PAYMENT_AMOUNT, Permission.RELEASE_PAYMENT, Permission.VIEW_PAYMENT,
        Permission.VIEW_AUDIT
    ],
    Role.VENDOR: [
        Permission.VIEW_ORDER, Permission.DECIDE_ASSIGNMENT, Permission.CREATE_DISPATCH,
        Permission.UPLOAD_VENDOR_INVOICE, Permission.VIEW_PAYMENT
    ],
}

class PermissionChecker:
    def check_permission(self, user: User, permission: Permission) -> bool:
        """
        Basic Role-Based Check.
        """
        try:
            role_enum = Role(user.role)
        except ValueError:
            logger.warning(f"Unknown role {user.role} for user {user.username}")
            return False

        if permission in ROLE_PERMISSIONS.get(role_enum, []):
            return True
            
        logger.warning(f"User {user.username} ({user.role}) denied permission {permission.value}")
        return False

    def check_vendor_scope(self, user: User, vendor_id: str) -> bool:
        """
        Vendors only ever act on their own assignments, dispatches and
        invoices. Internal roles are not vendor-scoped.
        """
        if user.role != Role.VENDOR.value:
            return True
        if user.vendor_id == vendor_id:
            return True
        logger.warning(f"Vendor user {user.username} ({user.vendor_id}) tried to act for vendor {vendor_id}")
        return False

    def actor_for(self, user: User) -> Actor:
        return Actor(id=user.username, name=user.full_name or user.username, type=user.role.upper())

permission_checker = PermissionChecker()
