from typing import Optional
from oms.repositories.base import BaseRepository
from oms.models.order import Order

class OrderRepository(BaseRepository[Order]):
    key_field = "order_id"

    async def get_by_item(self, order_item_id: str) -> Optional[Order]:
        return await self.get_by_field("items.order_item_id", order_item_id)
