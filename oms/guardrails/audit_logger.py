import logging
import uuid
from datetime import datetime
from typing import List, Optional, Dict, Any, Union

from oms.database import db
from oms.models.audit import AuditEvent, Action, Actor, ActionType

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = Actor(id="lifecycle_engine", name="Lifecycle Engine", type="SYSTEM")

class AuditLogger:
    async def log_event(self,
                        entity_type: str,
                        entity_id: str,
                        event_type: Union[str, ActionType],
                        actor: Union[Actor, Dict[str, Any]],
                        action_details: str,
                        from_status: Optional[str] = None,
                        to_status: Optional[str] = None,
                        metadata: Dict[str, Any] = None):
        """
        Persist one audit event. `metadata["related"]` becomes the
        event's related entities; unknown event types are recorded as
        USER_ACTION.
        """
        metadata = metadata or {}
        actor_obj = Actor(**actor) if isinstance(actor, dict) else actor
        now = datetime.utcnow()

        if isinstance(event_type, str):
            try:
                e_type = ActionType(event_type)
            except ValueError:
                e_type = ActionType.USER_ACTION
        else:
            e_type = event_type

        event = AuditEvent(
            event_id=f"EVT-{uuid.uuid4().hex}",
            entity_type=entity_type,
            entity_id=entity_id,
            timestamp=now,
            actor=actor_obj,
            action=Action(
                action_type=e_type,
                performed_by=actor_obj,
                details=action_details,
                timestamp=now,
                metadata=metadata
            ),
            from_status=from_status,
            to_status=to_status,
            related_entities=metadata.get("related", {})
        )

        if db.audit:
            await db.audit.create(event)
        else:
            logger.warning(f"Audit store not connected; {entity_type} {entity_id} event not saved")

        logger.info(f"AUDIT [{e_type.value}] {entity_type} {entity_id}: {action_details}")

    async def log_transition(self,
                             entity_type: str,
                             entity_id: str,
                             from_status: Optional[Any],
                             to_status: Optional[Any],
                             actor: Optional[Actor] = None,
                             details: Optional[str] = None,
                             related: Optional[Dict[str, str]] = None):
        from_value = getattr(from_status, "value", from_status)
        to_value = getattr(to_status, "value", to_status)
        await self.log_event(
            entity_type=entity_type,
            entity_id=entity_id,
            event_type=ActionType.STATE_CHANGE,
            actor=actor or SYSTEM_ACTOR,
            action_details=details or f"State changed from {from_value} to {to_value}",
            from_status=from_value,
            to_status=to_value,
            metadata={"related": related or {}}
        )

    async def get_audit_trail(self, entity_type: str, entity_id: str) -> List[AuditEvent]:
        if not db.audit:
            return []
        return await db.audit.get_for_entity(entity_type, entity_id)

audit_logger = AuditLogger()
