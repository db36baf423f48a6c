from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field
from oms.models.base import MongoModel

class ActionType(str, Enum):
    USER_ACTION = "USER_ACTION"    # uploads and other non-transition actions
    STATE_CHANGE = "STATE_CHANGE"
    CORRECTION = "CORRECTION"      # amount edits, delivery overrides, GRN annotations

class Actor(BaseModel):
    id: str
    name: str
    type: str = "SYSTEM" # SYSTEM, ADMIN, OPERATIONS, ACCOUNTS, VENDOR

class Action(BaseModel):
    action_type: ActionType
    performed_by: Actor
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    details: str
    metadata: Dict[str, Any] = {}

class AuditEvent(MongoModel):
    """
    One lifecycle transition or correction, keyed by the entity it touched.
    """
    event_id: str = Field(..., description="EVT-<uuid hex>")
    entity_type: str = Field(..., description="Assignment, PurchaseOrder, Dispatch, ...")
    entity_id: str

    timestamp: datetime = Field(default_factory=datetime.utcnow)

    actor: Actor
    action: Action
    from_status: Optional[str] = None
    to_status: Optional[str] = None

    related_entities: Dict[str, str] = Field(default_factory=dict, description="e.g. {'po_number': 'PO-123'}")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "event_id": "EVT-4f0c...",
                "entity_type": "Assignment",
                "entity_id": "ASG-1A2B3C4D5E",
                "from_status": "Pending",
                "to_status": "PartiallyConfirmed",
                "action": {
                    "action_type": "STATE_CHANGE",
                    "details": "Vendor confirmed 60 of 100"
                }
            }
        }
    )
