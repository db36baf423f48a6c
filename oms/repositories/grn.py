from typing import List, Optional
from oms.repositories.base import BaseRepository
from oms.models.grn import GoodsReceiptNote

class GRNRepository(BaseRepository[GoodsReceiptNote]):
    key_field = "grn_number"

    async def get_for_dispatch(self, dispatch_id: str) -> Optional[GoodsReceiptNote]:
        return await self.get_by_field("dispatch_id", dispatch_id)

    async def list_for_po(self, po_number: str) -> List[GoodsReceiptNote]:
        return await self.list({"po_number": po_number}, limit=1000, sort=[("received_at", 1)])

    async def list_for_pos(self, po_numbers: List[str]) -> List[GoodsReceiptNote]:
        return await self.list({"po_number": {"$in": po_numbers}}, limit=5000)
