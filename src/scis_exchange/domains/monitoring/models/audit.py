"""
Audit log models
"""

from typing import Optional, Dict, Any
from datetime import datetime
from dataclasses import dataclass, field, asdict
import uuid

from pydantic import BaseModel


AUDIT_SUCCESS = "Success"
AUDIT_FAILED = "Failed"


class AuditLogResponse(BaseModel):
    id: str
    action: str
    user_id: Optional[str] = None
    hospital_id: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    details: Optional[str] = None
    status: str
    error_message: Optional[str] = None
    response_time_ms: int = 0
    timestamp: datetime


class HealthStatusResponse(BaseModel):
    status: str
    timestamp: datetime
    database: Dict[str, Any]
    cache: Dict[str, Any]
    recent_failures: int


@dataclass
class AuditLogEntity:
    action: str
    status: str = AUDIT_SUCCESS
    user_id: Optional[str] = None
    hospital_id: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    details: Optional[str] = None
    error_message: Optional[str] = None
    response_time_ms: int = 0
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
