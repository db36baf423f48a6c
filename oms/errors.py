"""
Error taxonomy for lifecycle operations.

Every error carries enough context (entity, id, current state, expected
state) for the caller to render a specific message. User transitions
that fail with one of them are not retried.
"""
from typing import Any, Dict, Optional


class OMSError(Exception):
    status_code = 400

    def __init__(self,
                 message: str,
                 entity: Optional[str] = None,
                 entity_id: Optional[str] = None,
                 current: Optional[str] = None,
                 expected: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.expected = expected

    def to_dict(self) -> Dict[str, Any]:
        data = {"error": type(self).__name__, "detail": self.message}
        if self.entity:
            data["entity"] = self.entity
        if self.entity_id:
            data["entity_id"] = self.entity_id
        if self.current is not None:
            data["current"] = self.current
        if self.expected is not None:
            data["expected"] = self.expected
        return data


class ValidationError(OMSError):
    """Malformed input: non-positive quantity, empty required reason, etc."""
    status_code = 422


class NotFoundError(OMSError):
    status_code = 404


class InvalidStateError(OMSError):
    """Operation attempted from a state that does not permit it."""
    status_code = 409


class AlreadyDecidedError(InvalidStateError):
    """The assignment has already been confirmed, declined or closed."""


class IneligibleAssignmentError(OMSError):
    """PO generation blocked by a Pending (or missing) assignment."""
    status_code = 409


class DeliveryNotVerifiedError(OMSError):
    """Payment release attempted without delivery verified as Yes."""
    status_code = 409


class ConcurrentModificationError(OMSError):
    """The document changed between read and write."""
    status_code = 409
