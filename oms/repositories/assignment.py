from typing import List, Optional
from oms.repositories.base import BaseRepository
from oms.models.assignment import Assignment

class AssignmentRepository(BaseRepository[Assignment]):
    key_field = "assignment_id"

    async def list_for_order(self, order_id: str, vendor_id: Optional[str] = None) -> List[Assignment]:
        filter = {"order_id": order_id}
        if vendor_id:
            filter["vendor_id"] = vendor_id
        return await self.list(filter, limit=1000, sort=[("created_at", 1)])

    async def list_for_item(self, order_item_id: str) -> List[Assignment]:
        return await self.list({"order_item_id": order_item_id}, limit=1000, sort=[("created_at", 1)])
