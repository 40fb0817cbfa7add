import logging
from functools import lru_cache
from typing import Any, Dict, List, Sequence, Union

from pydantic import ValidationError

from app.core.constants import MAX_SCORE, MIN_SCORE, REQUIRED_WEIGHT_TOTAL
from app.core.default_rubric import DEFAULT_RUBRIC
from app.core.exceptions import RubricValidationError
from app.schemas.common import BantCategory
from app.schemas.rubric import (
    Criterion,
    RangeCriterion,
    RubricConfig,
    RubricConfigInput,
    ValidationIssue,
)
from app.services.question_sequencer import QUESTION_ORDER

logger = logging.getLogger(__name__)


class RubricValidator:
    """Validate custom BANT rubrics and derive their scoring description.

    Rules:
        1. The five category weights sum to exactly 100.
        2. Thresholds are strictly descending: priority > hot > warm.
        3. Every criterion table is non-empty and no criterion awards
           negative points.
        4. Custom question wording only targets question stages and is
           never blank.

    Structural checks carried over from the admin API: weights and
    thresholds stay on the 0–100 scale and budget ranges are not
    inverted.  All violations are collected and raised together.

    Whether a category's best criterion equals its weight is **not**
    enforced; a mismatch is only logged.
    """

    def collect_issues(self, config: RubricConfigInput) -> List[ValidationIssue]:
        """Return every rule *config* breaks; empty means valid."""
        issues: List[ValidationIssue] = []
        issues.extend(self._check_weights(config))
        issues.extend(self._check_thresholds(config))
        for category in BantCategory:
            issues.extend(
                self._check_criteria(category, getattr(config, f"{category.value}_criteria"))
            )
        issues.extend(self._check_questions(config))
        return issues

    def validate(self, config: Union[RubricConfigInput, Dict[str, Any]]) -> RubricConfig:
        """Return the validated rubric or raise ``RubricValidationError``."""
        if not isinstance(config, RubricConfigInput):
            try:
                config = RubricConfigInput.model_validate(config)
            except ValidationError as exc:
                raise RubricValidationError(
                    [
                        ValidationIssue(
                            field=".".join(str(part) for part in err["loc"]) or "config",
                            message=err["msg"],
                        )
                        for err in exc.errors()
                    ]
                ) from exc

        issues = self.collect_issues(config)
        if issues:
            logger.info("Rejected BANT configuration: %s", "; ".join(i.message for i in issues))
            raise RubricValidationError(issues)

        self._warn_on_unscaled_tables(config)
        return RubricConfig(
            **config.model_dump(),
            scoring_prompt=describe_rubric(config),
        )

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    @staticmethod
    def _check_weights(config: RubricConfigInput) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        for category in BantCategory:
            weight = getattr(config, f"{category.value}_weight")
            if not MIN_SCORE <= weight <= MAX_SCORE:
                issues.append(
                    ValidationIssue(
                        field=f"{category.value}_weight",
                        message=f"{category.value} weight must be between 0 and 100 (got {weight})",
                    )
                )

        total = sum(getattr(config, f"{c.value}_weight") for c in BantCategory)
        if total != REQUIRED_WEIGHT_TOTAL:
            issues.append(
                ValidationIssue(
                    field="weights",
                    message=f"Category weights must sum to exactly 100 (got {total})",
                )
            )
        return issues

    @staticmethod
    def _check_thresholds(config: RubricConfigInput) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        thresholds = (
            ("priority_threshold", config.priority_threshold),
            ("hot_threshold", config.hot_threshold),
            ("warm_threshold", config.warm_threshold),
        )
        for name, value in thresholds:
            if not MIN_SCORE <= value <= MAX_SCORE:
                issues.append(
                    ValidationIssue(
                        field=name,
                        message=f"{name} must be between 0 and 100 (got {value})",
                    )
                )

        if not config.priority_threshold > config.hot_threshold > config.warm_threshold:
            issues.append(
                ValidationIssue(
                    field="thresholds",
                    message=(
                        "Thresholds must be strictly descending: "
                        f"priority ({config.priority_threshold}) > "
                        f"hot ({config.hot_threshold}) > "
                        f"warm ({config.warm_threshold})"
                    ),
                )
            )
        return issues

    @staticmethod
    def _check_criteria(
        category: BantCategory, criteria: Sequence[Criterion]
    ) -> List[ValidationIssue]:
        field = f"{category.value}_criteria"
        if not criteria:
            return [
                ValidationIssue(
                    field=field,
                    message=f"{category.value} criteria must contain at least one entry",
                )
            ]

        issues: List[ValidationIssue] = []
        for index, criterion in enumerate(criteria):
            if criterion.points < 0:
                issues.append(
                    ValidationIssue(
                        field=f"{field}[{index}].points",
                        message=(
                            f"{category.value} criterion '{criterion.label}' has negative "
                            f"points ({criterion.points})"
                        ),
                    )
                )
            if (
                isinstance(criterion, RangeCriterion)
                and criterion.min is not None
                and criterion.max is not None
                and criterion.min >= criterion.max
            ):
                issues.append(
                    ValidationIssue(
                        field=f"{field}[{index}]",
                        message=(
                            f"budget range '{criterion.label}' has min ({criterion.min:g}) "
                            f"not below max ({criterion.max:g})"
                        ),
                    )
                )
        return issues

    @staticmethod
    def _check_questions(config: RubricConfigInput) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        for stage, text in config.questions.items():
            if stage not in QUESTION_ORDER:
                issues.append(
                    ValidationIssue(
                        field=f"questions.{stage.value}",
                        message=f"'{stage.value}' is not a question stage",
                    )
                )
            elif not text.strip():
                issues.append(
                    ValidationIssue(
                        field=f"questions.{stage.value}",
                        message=f"Question text for '{stage.value}' must not be blank",
                    )
                )
        return issues

    @staticmethod
    def _warn_on_unscaled_tables(config: RubricConfigInput) -> None:
        for category in BantCategory:
            criteria = getattr(config, f"{category.value}_criteria")
            weight = getattr(config, f"{category.value}_weight")
            top = max(c.points for c in criteria)
            if top != weight:
                logger.warning(
                    "%s criteria top out at %d points but the weight is %d",
                    category.value,
                    top,
                    weight,
                )


# ---------------------------------------------------------------------------
# Rubric description
# ---------------------------------------------------------------------------


def _format_amount(value: float) -> str:
    if value >= 1_000_000 and value % 100_000 == 0:
        return f"{value / 1_000_000:g}M"
    if value >= 1_000 and value % 100 == 0:
        return f"{value / 1_000:g}K"
    return f"{value:g}"


def _describe_range(criterion: RangeCriterion) -> str:
    if criterion.min is None and criterion.max is None:
        return "any amount"
    if criterion.min is None:
        return f"below {_format_amount(criterion.max)}"
    if criterion.max is None:
        return f"{_format_amount(criterion.min)} and above"
    return f"{_format_amount(criterion.min)} to {_format_amount(criterion.max)}"


def describe_rubric(config: RubricConfigInput) -> str:
    """Render a rubric as plain-text scoring instructions.

    Deterministic templating: the same configuration always yields the
    same text.  The result is handed to the extraction service as
    context and stored alongside the configuration.
    """
    weights = ", ".join(
        f"{c.value.capitalize()} {getattr(config, f'{c.value}_weight')}%" for c in BantCategory
    )
    lines = ["BANT SCORING CRITERIA", "", f"Weights: {weights}.", ""]

    for category in BantCategory:
        weight = getattr(config, f"{category.value}_weight")
        lines.append(f"{category.value.upper()} ({weight} points max):")
        for criterion in getattr(config, f"{category.value}_criteria"):
            if isinstance(criterion, RangeCriterion):
                detail = _describe_range(criterion)
            else:
                detail = criterion.type
            label = criterion.label or detail
            lines.append(f"- {label}: {criterion.points} points ({detail})")
        lines.append("")

    lines.extend(
        [
            "LEAD CLASSIFICATION:",
            f"- Priority: score >= {config.priority_threshold}",
            f"- Hot: score >= {config.hot_threshold}",
            f"- Warm: score >= {config.warm_threshold}",
            f"- Cold: score below {config.warm_threshold}",
        ]
    )
    return "\n".join(lines)


@lru_cache(maxsize=1)
def default_rubric() -> RubricConfig:
    """Return the validated system default rubric."""
    return RubricValidator().validate(DEFAULT_RUBRIC)
