import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from pymongo.errors import PyMongoError

from lms.progression.dependencies import get_store
from lms.progression.store import RecordStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["System"])


@router.get("/health")
async def health(store: RecordStore = Depends(get_store)):
    """
    Liveness plus a database ping. Always 200; the database status is
    reported in the body so the process itself is not marked dead.
    """
    record = {
        "timestamp": datetime.utcnow(),
        "status": {"api": "UP"},
    }
    try:
        await store.ping()
        record["status"]["database"] = "UP"
    except PyMongoError as e:
        logger.warning("Database ping failed: %s", e)
        record["status"]["database"] = "DOWN"
    return record
