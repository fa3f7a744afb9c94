"""
Endpoint registry models: per-hospital FHIR endpoints keyed by data type
"""

from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum
from dataclasses import dataclass, field, asdict
import uuid

from pydantic import BaseModel, Field, field_validator

from ...hospital.models.hospital import Role


class DataType(str, Enum):
    """Clinical data categories that can be requested across hospitals"""
    LAB_RESULTS = "LabResults"
    MEDICAL_HISTORY = "MedicalHistory"
    TREATMENT_RECORDS = "TreatmentRecords"
    PATIENT_DEMOGRAPHICS = "PatientDemographics"
    VITAL_SIGNS = "VitalSigns"
    MEDICATIONS = "Medications"
    PROCEDURES = "Procedures"
    DIAGNOSTIC_REPORTS = "DiagnosticReports"
    ENCOUNTERS = "Encounters"
    CONDITIONS = "Conditions"
    ALLERGIES = "Allergies"
    IMMUNIZATIONS = "Immunizations"


DATA_TYPE_DISPLAY_NAMES = {
    DataType.LAB_RESULTS: "Lab Results",
    DataType.MEDICAL_HISTORY: "Medical History",
    DataType.TREATMENT_RECORDS: "Treatment Records",
    DataType.PATIENT_DEMOGRAPHICS: "Patient Demographics",
    DataType.VITAL_SIGNS: "Vital Signs",
    DataType.MEDICATIONS: "Medications",
    DataType.PROCEDURES: "Procedures",
    DataType.DIAGNOSTIC_REPORTS: "Diagnostic Reports",
    DataType.ENCOUNTERS: "Encounters",
    DataType.CONDITIONS: "Conditions",
    DataType.ALLERGIES: "Allergies",
    DataType.IMMUNIZATIONS: "Immunizations",
}

FHIR_RESOURCE_TYPES = [
    "Patient",
    "Observation",
    "Condition",
    "Procedure",
    "DiagnosticReport",
    "MedicationRequest",
    "Encounter",
    "AllergyIntolerance",
    "Immunization",
    "Bundle",
]


class ParameterLocation(str, Enum):
    QUERY = "query"
    PATH = "path"
    HEADER = "header"
    BODY = "body"


class EndpointParameterModel(BaseModel):
    """A parameter sent with each call to the endpoint"""
    name: str = Field(..., min_length=1, max_length=100)
    type: str = Field(default="string", pattern="^(string|number|boolean|date)$")
    location: ParameterLocation = ParameterLocation.QUERY
    required: bool = False
    default_value: Optional[str] = None
    description: Optional[str] = None
    example: Optional[str] = None


def require_absolute_url(v: Optional[str]) -> Optional[str]:
    if v is not None and not v.startswith(("http://", "https://")):
        raise ValueError("endpoint_url must be an absolute http(s) URL")
    return v


class EndpointCreateRequest(BaseModel):
    """Configure an endpoint for a hospital and data type"""
    hospital_id: str
    data_type: DataType
    endpoint_url: str = Field(..., min_length=1, max_length=2000,
                              description="Absolute URL; {patientId} is replaced with the patient's external id")
    fhir_resource_type: str = Field(..., description="Expected FHIR resourceType of the response")
    api_key: Optional[str] = Field(None, max_length=500)
    auth_token: Optional[str] = Field(None, max_length=2000)
    http_method: str = Field(default="GET", pattern="^(GET|POST)$")
    description: Optional[str] = Field(None, max_length=1000)
    is_active: bool = True
    endpoint_parameters: List[EndpointParameterModel] = Field(default_factory=list)
    allowed_roles: List[Role] = Field(default_factory=list, description="Empty means any role passing the role check")

    @field_validator("endpoint_url")
    @classmethod
    def url_must_be_absolute(cls, v: str) -> str:
        return require_absolute_url(v)

    @field_validator("fhir_resource_type")
    @classmethod
    def resource_type_must_be_known(cls, v: str) -> str:
        if v not in FHIR_RESOURCE_TYPES:
            raise ValueError(f"Unsupported FHIR resource type: {v}")
        return v


class EndpointUpdateRequest(BaseModel):
    """Partial endpoint update"""
    endpoint_url: Optional[str] = Field(None, min_length=1, max_length=2000)
    fhir_resource_type: Optional[str] = None
    api_key: Optional[str] = Field(None, max_length=500)
    auth_token: Optional[str] = Field(None, max_length=2000)
    http_method: Optional[str] = Field(None, pattern="^(GET|POST)$")
    description: Optional[str] = Field(None, max_length=1000)
    is_active: Optional[bool] = None
    endpoint_parameters: Optional[List[EndpointParameterModel]] = None
    allowed_roles: Optional[List[Role]] = None

    @field_validator("endpoint_url")
    @classmethod
    def url_must_be_absolute(cls, v: Optional[str]) -> Optional[str]:
        return require_absolute_url(v)

    @field_validator("fhir_resource_type")
    @classmethod
    def resource_type_must_be_known(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in FHIR_RESOURCE_TYPES:
            raise ValueError(f"Unsupported FHIR resource type: {v}")
        return v


class EndpointResponse(BaseModel):
    """Endpoint as returned by the API; credentials are reported, never echoed"""
    id: str
    hospital_id: str
    data_type: DataType
    data_type_display_name: str
    endpoint_url: str
    fhir_resource_type: str
    http_method: str
    description: Optional[str] = None
    is_active: bool
    has_api_key: bool
    has_auth_token: bool
    is_endpoint_valid: bool
    last_validation_date: Optional[datetime] = None
    last_validation_error: Optional[str] = None
    endpoint_parameters: List[EndpointParameterModel] = Field(default_factory=list)
    allowed_roles: List[Role] = Field(default_factory=list)
    created_at: datetime
    updated_at: Optional[datetime] = None


class EndpointValidationResponse(BaseModel):
    endpoint_id: str
    is_valid: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    validated_at: datetime


class DataTypeInfo(BaseModel):
    value: DataType
    display_name: str


@dataclass
class EndpointParameter:
    name: str
    type: str = "string"
    location: str = "query"
    required: bool = False
    default_value: Optional[str] = None
    description: Optional[str] = None
    example: Optional[str] = None


@dataclass
class EndpointEntity:
    """Internal endpoint entity for repository"""
    hospital_id: str
    data_type: DataType
    endpoint_url: str
    fhir_resource_type: str
    data_type_display_name: str = ""
    api_key: Optional[str] = None
    auth_token: Optional[str] = None
    http_method: str = "GET"
    description: Optional[str] = None
    is_active: bool = True
    is_endpoint_valid: bool = False
    last_validation_date: Optional[datetime] = None
    last_validation_error: Optional[str] = None
    endpoint_parameters: List[EndpointParameter] = field(default_factory=list)
    allowed_roles: List[str] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.data_type = DataType(self.data_type)
        if not self.data_type_display_name:
            self.data_type_display_name = DATA_TYPE_DISPLAY_NAMES[self.data_type]
        self.endpoint_parameters = [
            p if isinstance(p, EndpointParameter) else EndpointParameter(**p)
            for p in self.endpoint_parameters
        ]
        self.allowed_roles = [Role(r).value for r in self.allowed_roles]

    def permits(self, role: Role) -> bool:
        """An empty allow-list places no extra restriction"""
        return not self.allowed_roles or Role(role).value in self.allowed_roles

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["data_type"] = self.data_type.value
        return data
