from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel

from oms.api.auth import User
from oms.guardrails.decorators import ensure_vendor_scope, require_permission
from oms.guardrails.permissions import Permission, permission_checker
from oms.models.invoice import AttachmentRef, Invoice
from oms.services.invoice import invoice_service
from oms.tools.attachment_store import attachment_store

router = APIRouter(prefix="/api", tags=["Invoices"])

ALLOWED_CONTENT_TYPES = ["application/pdf", "image/png", "image/jpeg"]

class RejectRequest(BaseModel):
    reason: str

class VendorViewResponse(BaseModel):
    invoice_id: str
    vendor_invoice: Optional[AttachmentRef] = None
    can_reupload: bool

def _check_file(file: UploadFile):
    if file.content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(status_code=400, detail="Invalid file type. Only PDF, PNG, JPEG allowed.")

@router.get("/invoices/{invoice_id}", response_model=Invoice)
async def get_invoice(
    invoice_id: str,
    current_user: User = Depends(require_permission(Permission.VIEW_PAYMENT))
):
    invoice = await invoice_service.get(invoice_id)
    ensure_vendor_scope(current_user, invoice.vendor_id)
    return invoice

@router.post("/invoices/{invoice_id}/vendor-attachment", response_model=Invoice)
async def upload_vendor_invoice(
    invoice_id: str,
    file: UploadFile = File(...),
    current_user: User = Depends(require_permission(Permission.UPLOAD_VENDOR_INVOICE))
):
    _check_file(file)
    invoice = await invoice_service.get(invoice_id)
    ensure_vendor_scope(current_user, invoice.vendor_id)
    return await invoice_service.upload_vendor_invoice(
        invoice_id, file.filename, file.file, actor=permission_checker.actor_for(current_user)
    )

@router.post("/invoices/{invoice_id}/accounts-attachment", response_model=Invoice)
async def upload_accounts_invoice(
    invoice_id: str,
    file: UploadFile = File(...),
    current_user: User = Depends(require_permission(Permission.UPLOAD_ACCOUNTS_INVOICE))
):
    _check_file(file)
    return await invoice_service.upload_accounts_invoice(
        invoice_id, file.filename, file.file, actor=permission_checker.actor_for(current_user)
    )

@router.post("/invoices/{invoice_id}/approve", response_model=Invoice)
async def approve_invoice(
    invoice_id: str,
    current_user: User = Depends(require_permission(Permission.REVIEW_INVOICE))
):
    return await invoice_service.approve(invoice_id, actor=permission_checker.actor_for(current_user))

@router.post("/invoices/{invoice_id}/reject", response_model=Invoice)
async def reject_invoice(
    invoice_id: str,
    request: RejectRequest,
    current_user: User = Depends(require_permission(Permission.REVIEW_INVOICE))
):
    return await invoice_service.reject(
        invoice_id, request.reason, actor=permission_checker.actor_for(current_user)
    )

@router.get("/invoices/{invoice_id}/vendor-view", response_model=VendorViewResponse)
async def vendor_view(
    invoice_id: str,
    current_user: User = Depends(require_permission(Permission.VIEW_PAYMENT))
):
    invoice = await invoice_service.get(invoice_id)
    ensure_vendor_scope(current_user, invoice.vendor_id)
    return VendorViewResponse(
        invoice_id=invoice_id,
        vendor_invoice=invoice.vendor_view(),
        can_reupload=invoice.can_reupload
    )

@router.get("/attachments/{file_id}")
async def download_attachment(
    file_id: str,
    current_user: User = Depends(require_permission(Permission.VIEW_PAYMENT))
):
    file_name, content, metadata = await attachment_store.fetch(file_id)
    if current_user.role == "vendor":
        # Vendors only ever see their own upload, never the accounts copy.
        invoice = await invoice_service.get(metadata.get("invoice_id"))
        ensure_vendor_scope(current_user, invoice.vendor_id)
        if metadata.get("kind") != "vendor":
            raise HTTPException(status_code=403, detail="Vendors can only download their own invoices")

    media_type = "application/pdf" if file_name.lower().endswith(".pdf") else "application/octet-stream"
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'}
    )
