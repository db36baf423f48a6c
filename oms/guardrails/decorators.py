from fastapi import HTTPException, Depends
from oms.api.auth import get_current_active_user, User
from oms.guardrails.permissions import permission_checker, Permission

def require_permission(permission: Permission):
    """
    Dependency to check static permission.
    """
    def check(user: User = Depends(get_current_active_user)):
        if not permission_checker.check_permission(user, permission):
            raise HTTPException(
                status_code=403, 
                detail=f"Permission denied: {permission.value} required"
            )
        return user
    return check

def ensure_vendor_scope(user: User, vendor_id: str):
    """Raise 403 when a vendor user touches another vendor's records."""
    if not permission_checker.check_vendor_scope(user, vendor_id):
        raise HTTPException(
            status_code=403,
            detail="Vendors can only act on their own records"
        )
