from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import BantCategory, LeadTier


class CategoryScore(BaseModel):
    """Contribution of one BANT category to the final score."""

    model_config = ConfigDict(frozen=True)

    category: BantCategory
    value: Optional[Union[float, str]] = None
    matched_label: Optional[str] = None
    points: int = 0


class ScoreResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int = Field(..., ge=0, le=100)
    tier: LeadTier
    breakdown: List[CategoryScore] = Field(default_factory=list)
