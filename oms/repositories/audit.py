from typing import List
from oms.repositories.base import BaseRepository
from oms.models.audit import AuditEvent

class AuditRepository(BaseRepository[AuditEvent]):
    key_field = "event_id"

    async def log_event(self, event: AuditEvent):
        """Log an event to the audit trail."""
        await self.create(event)

    async def get_for_entity(self, entity_type: str, entity_id: str) -> List[AuditEvent]:
        """Retrieve all audit events for one entity, oldest first."""
        return await self.list(
            {"entity_type": entity_type, "entity_id": entity_id},
            limit=500,
            sort=[("timestamp", 1)]
        )
