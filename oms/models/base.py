import uuid
from datetime import datetime
from typing import Annotated, Any, Dict, NewType, Type, TypeVar
from pydantic import BaseModel, BeforeValidator, Field, ConfigDict
from bson import ObjectId

# Helper to handle ObjectId as string
PyObjectId = Annotated[str, BeforeValidator(str)]

# Business identifiers (prefixed strings, independent of Mongo _id)
OrderId = NewType("OrderId", str)
OrderItemId = NewType("OrderItemId", str)
VendorId = NewType("VendorId", str)
AssignmentId = NewType("AssignmentId", str)
PONumber = NewType("PONumber", str)
POLineId = NewType("POLineId", str)
DispatchId = NewType("DispatchId", str)
GRNNumber = NewType("GRNNumber", str)
InvoiceId = NewType("InvoiceId", str)
PaymentId = NewType("PaymentId", str)


def new_id(prefix: str) -> str:
    """Generate a business id like ASG-1A2B3C4D5E."""
    return f"{prefix}-{uuid.uuid4().hex[:10].upper()}"


T = TypeVar("T", bound="MongoModel")

class MongoModel(BaseModel):
    """
    Base model for MongoDB documents with _id handling and serialization helpers.
    """
    id: PyObjectId | None = Field(default=None, alias="_id")
    
    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    @classmethod
    def from_mongo(cls: Type[T], data: Dict[str, Any]) -> T:
        """Convert MongoDB document to Pydantic model."""
        if not data:
            return None
        data = dict(data)
        id = data.pop("_id", None)
        return cls(id=id, **data)

    def to_mongo(self, exclude_none: bool = False) -> Dict[str, Any]:
        """Convert Pydantic model to MongoDB document."""
        data = self.model_dump(by_alias=True, exclude_none=exclude_none)
        # derived fields are recomputed on read, never stored
        for name in type(self).model_computed_fields:
            data.pop(name, None)
        if data.get("_id") is None:
            data.pop("_id", None)
        return data


class VersionedDocument(MongoModel):
    """
    Lifecycle document guarded by optimistic concurrency.
    Every write bumps `version`; a write carrying a stale version is refused.
    """
    version: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
