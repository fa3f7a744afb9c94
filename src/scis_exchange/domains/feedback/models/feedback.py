"""
Patient feedback models
"""

from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum
from dataclasses import dataclass, field, asdict
import uuid

from pydantic import BaseModel, Field


class Sentiment(str, Enum):
    POSITIVE = "Positive"
    NEUTRAL = "Neutral"
    NEGATIVE = "Negative"


class FeedbackSubmission(BaseModel):
    """Patient feedback on a treatment"""
    patient_id: str = Field(..., description="Internal patient id")
    doctor_id: str
    treatment_description: Optional[str] = Field(None, max_length=1000)
    pre_treatment_rating: int = Field(..., ge=1, le=5)
    post_treatment_rating: int = Field(..., ge=1, le=5)
    satisfaction_rating: int = Field(..., ge=1, le=5)
    text_feedback: Optional[str] = Field(None, max_length=2000)


class FeedbackResponse(BaseModel):
    """Feedback response model"""
    id: str
    patient_id: str
    doctor_id: str
    hospital_id: str
    treatment_description: Optional[str] = None
    pre_treatment_rating: int
    post_treatment_rating: int
    satisfaction_rating: int
    text_feedback: Optional[str] = None
    treatment_evaluation_score: float = Field(..., description="TES on a 0-100 scale")
    sentiment_analysis: Sentiment
    sentiment_score: float = Field(..., description="Classifier confidence in [0, 1]")
    is_processed: bool
    created_at: datetime


class AverageTESResponse(BaseModel):
    subject_id: str
    average_tes: float
    feedback_count: int


class DoctorAlert(BaseModel):
    doctor_id: str
    doctor_name: str
    hospital_id: Optional[str] = None
    average_tes: float
    severity: str = Field(..., description="Critical or Warning")


class HospitalRanking(BaseModel):
    hospital_id: str
    name: str
    average_tes: float
    interoperability_success_rate: float
    patient_volume: int
    performance_index: float


class SentimentShare(BaseModel):
    sentiment: Sentiment
    count: int
    percentage: float


class PerformanceInsights(BaseModel):
    """Aggregate view for hospital managers"""
    low_performing_doctors: List[DoctorAlert] = Field(default_factory=list)
    hospital_rankings: List[HospitalRanking] = Field(default_factory=list)
    sentiment_distribution: List[SentimentShare] = Field(default_factory=list)
    total_feedback: int = 0
    generated_at: datetime


@dataclass
class FeedbackScore:
    """Output of scoring one feedback submission"""
    treatment_evaluation_score: float
    sentiment: Sentiment
    sentiment_score: float


@dataclass
class FeedbackEntity:
    """Internal feedback entity; never modified after insert"""
    patient_id: str
    doctor_id: str
    hospital_id: str
    pre_treatment_rating: int
    post_treatment_rating: int
    satisfaction_rating: int
    treatment_evaluation_score: float
    sentiment_analysis: Sentiment
    sentiment_score: float
    treatment_description: Optional[str] = None
    text_feedback: Optional[str] = None
    is_processed: bool = True
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self):
        self.sentiment_analysis = Sentiment(self.sentiment_analysis)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["sentiment_analysis"] = self.sentiment_analysis.value
        return data
