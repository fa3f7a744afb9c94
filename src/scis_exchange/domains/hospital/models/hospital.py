"""
Hospital and user domain models
"""

from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum
from dataclasses import dataclass, field, asdict
import uuid

from pydantic import BaseModel, Field


class Role(str, Enum):
    """User roles"""
    SYSTEM_MANAGER = "SystemManager"
    HOSPITAL_MANAGER = "HospitalManager"
    DOCTOR = "Doctor"
    STAFF = "Staff"


class HospitalRegistrationRequest(BaseModel):
    """Register a new hospital; it starts inactive and unapproved"""
    name: str = Field(..., min_length=1, max_length=200, description="Hospital name")
    address: str = Field(..., min_length=1, max_length=500, description="Street address")
    phone_number: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=200)
    license_number: Optional[str] = Field(None, max_length=50, description="Operating license number")


class HospitalApprovalRequest(BaseModel):
    verification_notes: Optional[str] = Field(None, max_length=1000)


class HospitalResponse(BaseModel):
    """Hospital response model"""
    id: str
    name: str
    address: str
    phone_number: Optional[str] = None
    email: Optional[str] = None
    license_number: Optional[str] = None
    is_active: bool
    is_approved: bool
    approved_at: Optional[datetime] = None
    approved_by_user_id: Optional[str] = None
    verification_notes: Optional[str] = None
    average_tes: float = 0.0
    interoperability_success_rate: float = 0.0
    patient_volume: int = 0
    performance_index: float = 0.0
    created_at: datetime


class PerformanceMetricsResponse(BaseModel):
    """Recomputed hospital performance metrics"""
    hospital_id: str
    average_tes: float = Field(..., description="Mean treatment evaluation score of the hospital's feedback")
    interoperability_success_rate: float = Field(..., description="Percentage of resolved requests served that completed")
    patient_volume: int = Field(..., description="Number of active patients")
    performance_index: float


class DashboardStatsResponse(BaseModel):
    """
    Headline counts for a management dashboard.

    hospital_id is None for the exchange-wide view of a system manager.
    Request figures cover requests served from the hospital's data.
    """
    hospital_id: Optional[str] = None
    hospital_name: Optional[str] = None
    total_hospitals: int
    total_patients: int
    total_doctors: int
    total_data_requests: int
    pending_data_requests: int
    average_tes: float
    interoperability_success_rate: float
    alerts_count: int = Field(..., description="Doctors whose average TES is below the warning threshold")


class UserCreateRequest(BaseModel):
    """Create a user; every role except SystemManager needs a hospital"""
    username: str = Field(..., min_length=3, max_length=100)
    email: str = Field(..., max_length=200)
    role: Role
    hospital_id: Optional[str] = Field(None, description="Affiliated hospital id")


class UserResponse(BaseModel):
    id: str
    username: str
    email: str
    role: Role
    hospital_id: Optional[str] = None
    is_active: bool
    created_at: datetime
    last_login_at: Optional[datetime] = None


@dataclass
class HospitalEntity:
    """Internal hospital entity for repository"""
    name: str
    address: str
    phone_number: Optional[str] = None
    email: Optional[str] = None
    license_number: Optional[str] = None
    is_active: bool = False
    is_approved: bool = False
    approved_at: Optional[datetime] = None
    approved_by_user_id: Optional[str] = None
    verification_notes: Optional[str] = None
    average_tes: float = 0.0
    interoperability_success_rate: float = 0.0
    patient_volume: int = 0
    performance_index: float = 0.0
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class UserEntity:
    """Internal user entity for repository"""
    username: str
    email: str
    role: Role
    hospital_id: Optional[str] = None
    is_active: bool = True
    last_login_at: Optional[datetime] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self):
        self.role = Role(self.role)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["role"] = self.role.value
        return data


def calculate_performance_index(average_tes: float, interoperability_rate: float, patient_volume: int) -> float:
    """Weighted blend of TES, interoperability and volume (volume scaled down by 10)"""
    return round(
        average_tes * 0.5 + interoperability_rate * 0.3 + (patient_volume / 10.0) * 0.2,
        2
    )
