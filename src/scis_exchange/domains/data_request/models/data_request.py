"""
Data request models
"""

from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum
from dataclasses import dataclass, field, asdict
import uuid

from pydantic import BaseModel, Field

from ...endpoint.models.endpoint import DataType


class RequestStatus(str, Enum):
    """Lifecycle of a data request; Denied and Completed are terminal"""
    PENDING = "Pending"
    APPROVED = "Approved"
    DENIED = "Denied"
    COMPLETED = "Completed"


class DataRequestSubmission(BaseModel):
    """Ask for a patient's data; the requester comes from the caller identity"""
    patient_id: str = Field(..., min_length=1, description="External patient identifier")
    data_type: DataType
    purpose: Optional[str] = Field(None, max_length=500, description="Stated purpose of the request")


class ApprovalDecision(BaseModel):
    """Decision by the patient's hospital on a pending request"""
    is_approved: bool
    reason: Optional[str] = Field(None, max_length=1000, description="Recorded as denial reason when denying")


class DataRequestResponse(BaseModel):
    """Data request response model"""
    id: str
    requesting_user_id: str
    requesting_hospital_id: str
    patient_id: str
    patient_external_id: str
    patient_hospital_id: Optional[str] = None
    approving_user_id: Optional[str] = None
    data_type: DataType
    purpose: Optional[str] = None
    status: RequestStatus
    request_date: datetime
    response_date: Optional[datetime] = None
    approval_date: Optional[datetime] = None
    response_data: Optional[str] = Field(None, description="FHIR JSON exactly as returned by the source hospital")
    denial_reason: Optional[str] = None
    response_time_ms: int = 0
    is_consent_valid: bool = False
    is_role_authorized: bool = False
    is_cross_hospital_request: bool = False


@dataclass
class DataRequestEntity:
    """Internal data request entity for repository"""
    requesting_user_id: str
    requesting_hospital_id: str
    patient_id: str
    patient_external_id: str
    data_type: DataType
    purpose: Optional[str] = None
    patient_hospital_id: Optional[str] = None
    approving_user_id: Optional[str] = None
    status: RequestStatus = RequestStatus.PENDING
    response_date: Optional[datetime] = None
    approval_date: Optional[datetime] = None
    response_data: Optional[str] = None
    denial_reason: Optional[str] = None
    response_time_ms: int = 0
    is_consent_valid: bool = False
    is_role_authorized: bool = False
    is_cross_hospital_request: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    request_date: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self):
        self.data_type = DataType(self.data_type)
        self.status = RequestStatus(self.status)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["data_type"] = self.data_type.value
        data["status"] = self.status.value
        return data
