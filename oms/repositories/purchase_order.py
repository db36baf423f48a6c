from typing import List, Optional
from oms.repositories.base import BaseRepository
from oms.models.purchase_order import PurchaseOrder

class PurchaseOrderRepository(BaseRepository[PurchaseOrder]):
    key_field = "po_number"

    async def get_for_order_vendor(self, order_id: str, vendor_id: str) -> Optional[PurchaseOrder]:
        doc = await self.collection.find_one({"order_id": order_id, "vendor_id": vendor_id})
        return self.model_cls.from_mongo(doc) if doc else None

    async def get_by_line(self, po_line_id: str) -> Optional[PurchaseOrder]:
        return await self.get_by_field("items.po_line_id", po_line_id)

    async def list_for_order(self, order_id: str) -> List[PurchaseOrder]:
        return await self.list({"order_id": order_id}, limit=1000)
