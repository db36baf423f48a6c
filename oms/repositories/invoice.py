from typing import List, Optional
from oms.repositories.base import BaseRepository
from oms.models.invoice import Invoice

class InvoiceRepository(BaseRepository[Invoice]):
    key_field = "invoice_id"

    async def get_for_po(self, po_number: str) -> Optional[Invoice]:
        return await self.get_by_field("po_number", po_number)

    async def list_for_pos(self, po_numbers: List[str]) -> List[Invoice]:
        return await self.list({"po_number": {"$in": po_numbers}}, limit=1000)
