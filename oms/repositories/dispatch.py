from typing import List
from oms.repositories.base import BaseRepository
from oms.models.dispatch import Dispatch

class DispatchRepository(BaseRepository[Dispatch]):
    key_field = "dispatch_id"

    async def list_for_po(self, po_number: str) -> List[Dispatch]:
        return await self.list({"po_number": po_number}, limit=1000, sort=[("dispatch_date", 1)])
