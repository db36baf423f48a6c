from datetime import datetime
from typing import Generic, TypeVar, Any, Dict, List, Optional, Sequence, Tuple
from motor.motor_asyncio import AsyncIOMotorCollection
from pydantic import BaseModel
from pymongo import ReturnDocument
from oms.models.base import MongoModel

T = TypeVar("T", bound=MongoModel)


def to_document(value: Any) -> Any:
    """Turn pydantic values inside an update into plain BSON-able data."""
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, dict):
        return {k: to_document(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_document(v) for v in value]
    return value


class BaseRepository(Generic[T]):
    # Business identifier used for lookups and versioned writes
    key_field: str = "_id"

    def __init__(self, collection: AsyncIOMotorCollection, model_cls: type[T]):
        self.collection = collection
        self.model_cls = model_cls

    async def get(self, key: str) -> Optional[T]:
        """Get a document by its business key."""
        return await self.get_by_field(self.key_field, key)

    async def get_by_field(self, field: str, value: Any) -> Optional[T]:
        """Get a document by a specific field."""
        doc = await self.collection.find_one({field: value})
        return self.model_cls.from_mongo(doc) if doc else None

    async def list(self,
                   filter: Optional[Dict[str, Any]] = None,
                   skip: int = 0,
                   limit: int = 100,
                   sort: Optional[Sequence[Tuple[str, int]]] = None) -> List[T]:
        """List documents with optional filter, sort and pagination."""
        cursor = self.collection.find(filter or {})
        if sort:
            cursor = cursor.sort(list(sort))
        cursor = cursor.skip(skip).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [self.model_cls.from_mongo(doc) for doc in docs]

    async def create(self, model: T) -> T:
        """Create a new document. Unique index violations propagate as DuplicateKeyError."""
        data = model.to_mongo()
        result = await self.collection.insert_one(data)
        model.id = str(result.inserted_id)
        return model

    async def update_versioned(self, model: T, changes: Dict[str, Any]) -> Optional[T]:
        """
        Compare-and-set write: applies `changes` only if the stored version
        still equals the version `model` was read at. Returns the updated
        document, or None when another writer got there first.
        """
        key = getattr(model, self.key_field)
        doc = await self.collection.find_one_and_update(
            {self.key_field: key, "version": model.version},
            {
                "$set": {**to_document(changes), "updated_at": datetime.utcnow()},
                "$inc": {"version": 1},
            },
            return_document=ReturnDocument.AFTER
        )
        return self.model_cls.from_mongo(doc) if doc else None

    async def append(self, key: str, field: str, item: Any) -> Optional[T]:
        """Append to a list field without touching the rest of the document."""
        doc = await self.collection.find_one_and_update(
            {self.key_field: key},
            {
                "$push": {field: to_document(item)},
                "$set": {"updated_at": datetime.utcnow()},
                "$inc": {"version": 1},
            },
            return_document=ReturnDocument.AFTER
        )
        return self.model_cls.from_mongo(doc) if doc else None

    async def count(self, filter: Optional[Dict[str, Any]] = None) -> int:
        """Count documents matching a filter."""
        return await self.collection.count_documents(filter or {})
