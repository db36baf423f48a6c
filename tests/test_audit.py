import pytest
from unittest.mock import AsyncMock, patch

from oms.guardrails.audit_logger import AuditLogger, SYSTEM_ACTOR
from oms.models.audit import ActionType, AuditEvent
from oms.models.enums import AssignmentStatus


@pytest.mark.asyncio
async def test_log_event():
    with patch("oms.guardrails.audit_logger.db") as mock_db:
        mock_db.audit.create = AsyncMock()

        logger = AuditLogger()
        actor = {"id": "acc1", "name": "Accounts User", "type": "ACCOUNTS"}

        await logger.log_event(
            entity_type="Invoice",
            entity_id="INV-1",
            event_type="APPROVAL",  # not an ActionType, falls back to USER_ACTION
            actor=actor,
            action_details="Approved invoice",
            metadata={"related": {"po_number": "PO-1"}}
        )

        mock_db.audit.create.assert_called_once()
        event = mock_db.audit.create.call_args[0][0]
        assert event.entity_type == "Invoice"
        assert event.entity_id == "INV-1"
        assert event.action.action_type == ActionType.USER_ACTION
        assert event.action.details == "Approved invoice"
        assert event.related_entities == {"po_number": "PO-1"}


@pytest.mark.asyncio
async def test_log_transition():
    with patch("oms.guardrails.audit_logger.db") as mock_db:
        mock_db.audit.create = AsyncMock()

        await AuditLogger().log_transition(
            "Assignment", "ASG-1", AssignmentStatus.PENDING, AssignmentStatus.PARTIALLY_CONFIRMED
        )

        event = mock_db.audit.create.call_args[0][0]
        assert event.action.action_type == ActionType.STATE_CHANGE
        assert event.from_status == "Pending"
        assert event.to_status == "PartiallyConfirmed"
        assert event.actor == SYSTEM_ACTOR
        assert event.action.details == "State changed from Pending to PartiallyConfirmed"


@pytest.mark.asyncio
async def test_audit_trail_is_read_per_entity():
    with patch("oms.guardrails.audit_logger.db") as mock_db:
        mock_db.audit.get_for_entity = AsyncMock(return_value=[])

        trail = await AuditLogger().get_audit_trail("PaymentRecord", "PAY-1")
        assert trail == []
        mock_db.audit.get_for_entity.assert_called_once_with("PaymentRecord", "PAY-1")


def test_audit_event_schema_keeps_example_and_aliases():
    schema = AuditEvent.model_json_schema()
    assert schema["example"]["entity_type"] == "Assignment"
    assert AuditEvent.model_config["populate_by_name"] is True

    event = AuditEvent(
        _id="6650f1c2a1b2c3d4e5f60718",
        event_id="EVT-1", entity_type="Invoice", entity_id="INV-1",
        actor=SYSTEM_ACTOR,
        action={"action_type": "USER_ACTION", "performed_by": SYSTEM_ACTOR, "details": "uploaded"}
    )
    assert event.id == "6650f1c2a1b2c3d4e5f60718"
