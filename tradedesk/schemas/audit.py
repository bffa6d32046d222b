"""
Audit Log Schemas
"""
from pydantic import BaseModel
from typing import Any, Optional
from datetime import datetime
from uuid import UUID

class AuditLogResponse(BaseModel):
    id: UUID
    actor_id: str
    action: str
    entity_type: str
    entity_id: Optional[str]
    changes: Optional[Any]
    meta: Optional[Any]
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True
