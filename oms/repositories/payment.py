from typing import List, Optional
from oms.repositories.base import BaseRepository
from oms.models.payment import PaymentRecord

class PaymentRepository(BaseRepository[PaymentRecord]):
    key_field = "payment_id"

    async def get_for_po(self, po_number: str) -> Optional[PaymentRecord]:
        return await self.get_by_field("po_number", po_number)

    async def get_for_invoice(self, invoice_id: str) -> Optional[PaymentRecord]:
        return await self.get_by_field("invoice_id", invoice_id)

    async def list_pending(self, vendor_id: Optional[str] = None) -> List[PaymentRecord]:
        filter = {"payment_status": "Pending"}
        if vendor_id:
            filter["vendor_id"] = vendor_id
        return await self.list(filter, limit=1000, sort=[("due_date", 1)])
