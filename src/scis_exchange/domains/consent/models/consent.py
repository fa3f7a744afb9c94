"""
Patient consent models
"""

from typing import Optional, Dict, Any
from datetime import datetime
from dataclasses import dataclass, field, asdict
import uuid

from pydantic import BaseModel, Field

from ...endpoint.models.endpoint import DataType


class ConsentDecisionRequest(BaseModel):
    """Record a patient's consent decision for one requesting hospital and data type"""
    patient_id: str = Field(..., description="Internal patient id")
    requesting_hospital_id: str
    data_type: DataType
    is_consented: bool
    purpose: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=1000)
    expiry_date: Optional[datetime] = Field(None, description="Defaults to the configured validity window for grants")


class ConsentRevokeRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=1000)


class ConsentResponse(BaseModel):
    """Consent record response model"""
    id: str
    patient_id: str
    requesting_user_id: str
    requesting_hospital_id: str
    data_type: DataType
    purpose: Optional[str] = None
    is_consented: bool
    consent_date: datetime
    expiry_date: Optional[datetime] = None
    notes: Optional[str] = None
    is_active: bool
    is_expired: bool = False


@dataclass
class ConsentEntity:
    """
    One consent decision. Records are append-only: a new decision
    soft-deactivates earlier ones for the same tuple instead of editing them.
    """
    patient_id: str
    requesting_user_id: str
    requesting_hospital_id: str
    data_type: DataType
    is_consented: bool
    purpose: Optional[str] = None
    notes: Optional[str] = None
    expiry_date: Optional[datetime] = None
    is_active: bool = True
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    consent_date: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self):
        self.data_type = DataType(self.data_type)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.expiry_date is not None and self.expiry_date <= (now or datetime.utcnow())

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["data_type"] = self.data_type.value
        return data
