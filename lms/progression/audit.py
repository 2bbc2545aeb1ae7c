import secrets
from datetime import datetime
from typing import Optional

from lms.progression.models import ProgressAudit, PROGRESS_AUDITS
from lms.progression.store import RecordStore


def generate_id(prefix: str) -> str:
    """Generate unique ID with prefix"""
    return f"{prefix}_{secrets.token_hex(8).upper()}"


async def log_progress_audit(
    store: RecordStore,
    student_id: str,
    action: str,
    module_id: Optional[str] = None,
    metadata: dict = None
):
    """
    Record a completed student progression action for auditing.
    Rejected requests leave no row
    """
    audit = ProgressAudit(
        audit_id=generate_id("AUD"),
        student_id=student_id,
        module_id=module_id,
        action=action,
        metadata=metadata or {},
        timestamp=datetime.utcnow()
    )

    await store.create(PROGRESS_AUDITS, audit.dict())


async def get_audit_trail(store: RecordStore, student_id: str) -> list:
    """Newest first"""
    return await store.find_many(PROGRESS_AUDITS, {"student_id": student_id}, sort=[("timestamp", -1)])
