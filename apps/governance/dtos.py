from ninja import Schema
from uuid import UUID
from datetime import datetime
from typing import Optional, Any


class AuditLogOut(Schema):
    id: UUID
    user_id: Optional[UUID] = None
    username: Optional[str] = None
    action: str
    action_label: str
    subject_type: str
    subject_id: Optional[UUID] = None
    description: str
    before: Optional[Any] = None
    after: Optional[Any] = None
    changes: list = []
    ip_address: Optional[str] = None
    user_agent: str = ""
    created_at: datetime
