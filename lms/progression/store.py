from typing import Any, Dict, List, Optional, Sequence, Tuple
from motor.motor_asyncio import AsyncIOMotorDatabase

# ==================== GENERIC RECORD STORE ====================

SortSpec = Sequence[Tuple[str, int]]


class RecordStore:
    """
    Thin record-level wrapper around a Motor database.

    All reads project out Mongo's `_id` so records are plain JSON dicts keyed
    by their own string ids. Errors from the driver (PyMongoError) propagate
    to the caller unchanged.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def find_one(self, collection: str, filter: Dict[str, Any]) -> Optional[dict]:
        return await self.db[collection].find_one(filter, {"_id": 0})

    async def find_many(
        self,
        collection: str,
        filter: Dict[str, Any],
        sort: Optional[SortSpec] = None,
    ) -> List[dict]:
        cursor = self.db[collection].find(filter, {"_id": 0})
        if sort:
            cursor = cursor.sort(list(sort))
        return await cursor.to_list(length=None)

    async def create(self, collection: str, data: Dict[str, Any]) -> dict:
        doc = dict(data)
        await self.db[collection].insert_one(doc)
        doc.pop("_id", None)
        return doc

    async def update(self, collection: str, filter: Dict[str, Any], data: Dict[str, Any]) -> int:
        result = await self.db[collection].update_many(filter, {"$set": data})
        return result.modified_count

    async def upsert(self, collection: str, filter: Dict[str, Any], data: Dict[str, Any]) -> None:
        """Update the row matching filter or insert it; atomic on a unique index"""
        await self.db[collection].update_one(filter, {"$set": data}, upsert=True)

    async def delete(self, collection: str, filter: Dict[str, Any]) -> int:
        result = await self.db[collection].delete_many(filter)
        return result.deleted_count

    async def count(self, collection: str, filter: Dict[str, Any]) -> int:
        return await self.db[collection].count_documents(filter)

    async def ping(self) -> bool:
        await self.db.command("ping")
        return True
