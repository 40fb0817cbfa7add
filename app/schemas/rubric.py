"""Rubric (custom BANT configuration) schemas.

Criteria come in two shapes that share one contract, ``matches(value)``:
numeric ranges for budget and exact type tags for every other category.
The scoring engine only ever asks a criterion whether it matches, so
budget needs no special-casing there.
"""

from datetime import datetime
from typing import Dict, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import BantCategory, QualificationStage, SuccessResponse


# ---------------------------------------------------------------------------
# Criteria
# ---------------------------------------------------------------------------


class RangeCriterion(BaseModel):
    """Numeric range ``min <= value < max``; either bound may be open."""

    model_config = ConfigDict(frozen=True)

    min: Optional[float] = None
    max: Optional[float] = None
    points: int
    label: str = ""

    def matches(self, value: Union[float, str, None]) -> bool:
        if value is None or isinstance(value, str):
            return False
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value >= self.max:
            return False
        return True


class TagCriterion(BaseModel):
    """Exact match on a normalised type tag such as ``this_month``."""

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., min_length=1)
    points: int
    label: str = ""

    def matches(self, value: Union[float, str, None]) -> bool:
        return isinstance(value, str) and value == self.type


Criterion = Union[RangeCriterion, TagCriterion]


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class RubricConfigInput(BaseModel):
    """Request body for PUT /organizations/{id}/bant-config.

    Structural typing only; business rules (weight total, threshold
    ordering, non-empty tables) are checked by ``RubricValidator`` so
    that every violation is reported together.
    """

    budget_weight: int
    authority_weight: int
    need_weight: int
    timeline_weight: int
    contact_weight: int

    budget_criteria: List[RangeCriterion]
    authority_criteria: List[TagCriterion]
    need_criteria: List[TagCriterion]
    timeline_criteria: List[TagCriterion]
    contact_criteria: List[TagCriterion]

    priority_threshold: int
    hot_threshold: int
    warm_threshold: int

    # Optional wording per question stage; the order of stages never changes
    questions: Dict[QualificationStage, str] = Field(default_factory=dict)


class ValidationIssue(BaseModel):
    """One broken validation rule, addressed to the administrator."""

    field: str
    message: str


# ---------------------------------------------------------------------------
# Validated configuration
# ---------------------------------------------------------------------------


class RubricConfig(RubricConfigInput):
    """A rubric that passed validation, with its derived description."""

    model_config = ConfigDict(frozen=True)

    scoring_prompt: str = ""

    def weight_for(self, category: BantCategory) -> int:
        return getattr(self, f"{category.value}_weight")

    def criteria_for(self, category: BantCategory) -> List[Criterion]:
        return getattr(self, f"{category.value}_criteria")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class RubricConfigResponse(SuccessResponse):
    """Stored (or resolved default) rubric returned to the administrator."""

    organization_id: UUID
    agent_id: Optional[UUID] = None
    is_default: bool = False
    updated_at: Optional[datetime] = None
    config: RubricConfig


class RubricValidationResponse(BaseModel):
    """Dry-run validation result; nothing is persisted."""

    valid: bool
    errors: List[ValidationIssue] = Field(default_factory=list)
    scoring_prompt: Optional[str] = None
