from motor.motor_asyncio import AsyncIOMotorDatabase

from lms.progression.store import RecordStore


def get_db_instance() -> AsyncIOMotorDatabase:
    """Get database from main module"""
    from lms.main import db
    return db

# ==================== DEPENDENCY FUNCTIONS ====================

async def get_store() -> RecordStore:
    """Record store dependency"""
    return RecordStore(get_db_instance())
