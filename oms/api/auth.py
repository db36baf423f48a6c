"""
Caller identity.

Authentication happens upstream: the gateway validates the session and
forwards the user id, role and (for vendor users) vendor id as headers.
"""
from typing import Optional
from fastapi import Header, HTTPException, status
from pydantic import BaseModel

ROLES = ("admin", "operations", "accounts", "vendor")

class User(BaseModel):
    username: str
    role: str
    full_name: Optional[str] = None
    vendor_id: Optional[str] = None
    disabled: bool = False

async def get_current_active_user(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
    x_vendor_id: Optional[str] = Header(default=None),
) -> User:
    if not x_user_id or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing caller identity"
        )
    role = x_user_role.lower()
    if role not in ROLES:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown role '{x_user_role}'"
        )
    if role == "vendor" and not x_vendor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Vendor users must carry a vendor id"
        )
    return User(username=x_user_id, role=role, full_name=x_user_name, vendor_id=x_vendor_id)
