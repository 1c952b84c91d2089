"""Evaluation and badge schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import Field, field_validator

from app.models.evaluation import EvaluationStatus
from app.schemas.base import BaseSchema


def _check_skill_ratings(v: Optional[Dict[str, float]]) -> Optional[Dict[str, float]]:
    if v:
        for skill, rating in v.items():
            if not 0 <= rating <= 5:
                raise ValueError(f"Rating for '{skill}' must be between 0 and 5")
    return v


class EvaluationCreate(BaseSchema):
    """Schema for a coach's evaluation of one enrollment. Saved as a draft."""

    enrollment_id: str
    evaluation_date: Optional[date] = None
    term: Optional[str] = Field(None, max_length=50)
    overall_rating: Optional[Decimal] = Field(None, ge=0, le=5, decimal_places=2)
    skill_ratings: Optional[Dict[str, float]] = None
    strengths: Optional[str] = None
    areas_for_improvement: Optional[str] = None
    coach_notes: Optional[str] = None

    @field_validator("skill_ratings")
    @classmethod
    def validate_skill_ratings(cls, v: Optional[Dict[str, float]]) -> Optional[Dict[str, float]]:
        return _check_skill_ratings(v)


class EvaluationUpdate(BaseSchema):
    """Edit a draft evaluation."""

    evaluation_date: Optional[date] = None
    term: Optional[str] = Field(None, max_length=50)
    overall_rating: Optional[Decimal] = Field(None, ge=0, le=5, decimal_places=2)
    skill_ratings: Optional[Dict[str, float]] = None
    strengths: Optional[str] = None
    areas_for_improvement: Optional[str] = None
    coach_notes: Optional[str] = None

    @field_validator("skill_ratings")
    @classmethod
    def validate_skill_ratings(cls, v: Optional[Dict[str, float]]) -> Optional[Dict[str, float]]:
        return _check_skill_ratings(v)

    @field_validator("evaluation_date")
    @classmethod
    def reject_null_date(cls, v: Optional[date]) -> date:
        if v is None:
            raise ValueError("evaluation_date cannot be null")
        return v


class EvaluationResponse(BaseSchema):
    id: str
    enrollment_id: str
    student_id: str
    activity_id: str
    evaluator_id: str
    evaluation_date: date
    term: Optional[str] = None
    overall_rating: Optional[Decimal] = None
    skill_ratings: Optional[Dict[str, float]] = None
    strengths: Optional[str] = None
    areas_for_improvement: Optional[str] = None
    coach_notes: Optional[str] = None
    status: EvaluationStatus
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    activity_name: Optional[str] = None


class EvaluationListResponse(BaseSchema):
    items: List[EvaluationResponse]
    total: int


# ============== Badges ==============


class SkillBadgeCreate(BaseSchema):
    """Schema for defining a new badge."""

    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=50)
    icon_url: Optional[str] = Field(None, max_length=500)
    points: int = Field(0, ge=0)
    requirements: Optional[str] = None


class SkillBadgeResponse(BaseSchema):
    """Schema for badge response."""

    id: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    icon_url: Optional[str] = None
    points: int
    requirements: Optional[str] = None
    is_active: bool


class BadgeAward(BaseSchema):
    """Schema for awarding a badge to a student."""

    student_id: str
    badge_id: str
    enrollment_id: Optional[str] = None
    notes: Optional[str] = None


class StudentBadgeResponse(BaseSchema):
    """Schema for an earned badge."""

    id: str
    student_id: str
    badge_id: str
    enrollment_id: Optional[str] = None
    awarded_by: str
    awarded_at: datetime
    notes: Optional[str] = None
    badge: SkillBadgeResponse


class StudentBadgeListResponse(BaseSchema):
    student_id: str
    items: List[StudentBadgeResponse]
    count: int
    total_points: int
