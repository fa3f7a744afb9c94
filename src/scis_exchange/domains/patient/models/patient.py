"""
Patient domain models
"""

from typing import Optional, Dict, Any
from datetime import datetime, date
from dataclasses import dataclass, field, asdict
import uuid

from pydantic import BaseModel, Field


class PatientRegistrationRequest(BaseModel):
    """Register a patient at a hospital"""
    patient_id: str = Field(..., min_length=1, max_length=50, description="External patient identifier (unique)")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    date_of_birth: date
    gender: str = Field(..., max_length=20)
    phone_number: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=200)
    hospital_id: str = Field(..., description="Registering hospital; fixed for the patient's lifetime")


class PatientUpdateRequest(BaseModel):
    """Demographic update; external id and hospital are immutable"""
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    date_of_birth: Optional[date] = None
    gender: Optional[str] = Field(None, max_length=20)
    phone_number: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=200)


class PatientResponse(BaseModel):
    """Patient response model"""
    id: str
    patient_id: str
    first_name: str
    last_name: str
    date_of_birth: date
    gender: str
    phone_number: Optional[str] = None
    email: Optional[str] = None
    hospital_id: str
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None


@dataclass
class PatientEntity:
    """Internal patient entity for repository"""
    patient_id: str
    first_name: str
    last_name: str
    date_of_birth: str  # ISO date; BSON has no date-only type
    gender: str
    hospital_id: str
    phone_number: Optional[str] = None
    email: Optional[str] = None
    is_active: bool = True
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
