import pytest
from fastapi import HTTPException

from oms.api.auth import User
from oms.guardrails.decorators import ensure_vendor_scope, require_permission
from oms.guardrails.permissions import Permission, PermissionChecker


@pytest.fixture
def permissions():
    return PermissionChecker()


def test_rbac_check(permissions):
    admin = User(username="admin", role="admin")
    assert permissions.check_permission(admin, Permission.RELEASE_PAYMENT) is True
    assert permissions.check_permission(admin, Permission.VIEW_AUDIT) is True

    ops = User(username="ops1", role="operations")
    assert permissions.check_permission(ops, Permission.GENERATE_PO) is True
    assert permissions.check_permission(ops, Permission.RECORD_GRN) is True
    assert permissions.check_permission(ops, Permission.RELEASE_PAYMENT) is False

    accounts = User(username="acc1", role="accounts")
    assert permissions.check_permission(accounts, Permission.EDIT_PAYMENT_AMOUNT) is True
    assert permissions.check_permission(accounts, Permission.DECIDE_ASSIGNMENT) is False

    vendor = User(username="v-user", role="vendor", vendor_id="V001")
    assert permissions.check_permission(vendor, Permission.DECIDE_ASSIGNMENT) is True
    assert permissions.check_permission(vendor, Permission.UPLOAD_VENDOR_INVOICE) is True
    assert permissions.check_permission(vendor, Permission.REVIEW_INVOICE) is False
    assert permissions.check_permission(vendor, Permission.GENERATE_PO) is False


def test_unknown_role_is_denied(permissions):
    assert permissions.check_permission(User(username="x", role="auditor"), Permission.VIEW_ORDER) is False


def test_vendor_scope(permissions):
    vendor = User(username="v-user", role="vendor", vendor_id="V001")
    assert permissions.check_vendor_scope(vendor, "V001") is True
    assert permissions.check_vendor_scope(vendor, "V002") is False
    assert permissions.check_vendor_scope(User(username="ops1", role="operations"), "V002") is True

    with pytest.raises(HTTPException) as exc:
        ensure_vendor_scope(vendor, "V002")
    assert exc.value.status_code == 403


def test_require_permission_dependency():
    check = require_permission(Permission.RELEASE_PAYMENT)
    accounts = User(username="acc1", role="accounts")
    assert check(user=accounts) is accounts

    with pytest.raises(HTTPException) as exc:
        check(user=User(username="ops1", role="operations"))
    assert exc.value.status_code == 403


def test_actor_for(permissions):
    actor = permissions.actor_for(User(username="acc1", role="accounts", full_name="Asha"))
    assert actor.id == "acc1"
    assert actor.name == "Asha"
    assert actor.type == "ACCOUNTS"
