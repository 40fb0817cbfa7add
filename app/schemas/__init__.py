"""Pydantic schemas package – re-exports for convenience."""

# Common enums
from app.schemas.common import (
    BantCategory as BantCategory,
    LeadTier as LeadTier,
    MemberRole as MemberRole,
    AssignmentMode as AssignmentMode,
    ConversationStatus as ConversationStatus,
    MessageSender as MessageSender,
    QualificationStage as QualificationStage,
    SuccessResponse as SuccessResponse,
)

# Fact schemas
from app.schemas.facts import (
    ContactInfo as ContactInfo,
    FactRecord as FactRecord,
    Turn as Turn,
    TokenUsage as TokenUsage,
    ExtractionOutcome as ExtractionOutcome,
)

# Rubric schemas
from app.schemas.rubric import (
    RangeCriterion as RangeCriterion,
    TagCriterion as TagCriterion,
    RubricConfigInput as RubricConfigInput,
    RubricConfig as RubricConfig,
    ValidationIssue as ValidationIssue,
    RubricConfigResponse as RubricConfigResponse,
    RubricValidationResponse as RubricValidationResponse,
)

# Scoring schemas
from app.schemas.scoring import (
    CategoryScore as CategoryScore,
    ScoreResult as ScoreResult,
)

# Qualification schemas
from app.schemas.qualification import (
    Question as Question,
    TurnOutcome as TurnOutcome,
    QualificationStatusResponse as QualificationStatusResponse,
    TurnRequest as TurnRequest,
)
