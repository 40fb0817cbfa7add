import logging
from typing import List, Optional, Sequence, Union

from app.core.constants import MAX_SCORE, MIN_SCORE
from app.schemas.common import BantCategory, LeadTier
from app.schemas.facts import FactRecord
from app.schemas.rubric import Criterion, RubricConfig, TagCriterion
from app.schemas.scoring import CategoryScore, ScoreResult
from app.services import fact_normalizer
from app.services.rubric_validator import default_rubric

logger = logging.getLogger(__name__)

_TAG_CLASSIFIERS = {
    BantCategory.authority: fact_normalizer.classify_authority,
    BantCategory.need: fact_normalizer.classify_need,
    BantCategory.timeline: fact_normalizer.classify_timeline,
}


def classify_tier(score: int, rubric: RubricConfig) -> LeadTier:
    """Map a 0–100 score onto a tier, evaluated high to low."""
    if score >= rubric.priority_threshold:
        return LeadTier.priority
    if score >= rubric.hot_threshold:
        return LeadTier.hot
    if score >= rubric.warm_threshold:
        return LeadTier.warm
    return LeadTier.cold


def _resolve_tag(phrase: Optional[str], criteria: Sequence[Criterion], classifier) -> Optional[str]:
    """Turn a captured phrase into a tag the category's table can match.

    A phrase that already names a tag (or a criterion label) is used as
    is, so custom rubrics with their own vocabulary still match; other
    phrases go through the default keyword classifier.
    """
    if not phrase:
        return None
    slug = fact_normalizer.slugify(phrase)
    tags = [c for c in criteria if isinstance(c, TagCriterion)]
    for criterion in tags:
        if criterion.type == slug:
            return criterion.type
    for criterion in tags:
        if criterion.label and fact_normalizer.slugify(criterion.label) == slug:
            return criterion.type
    return classifier(phrase) if classifier else None


class BantScoringEngine:
    """Score a fact record against a weighted BANT rubric.

    For each category the fact is normalised (a number for budget, a
    type tag for the rest) and the category's ordered criteria are
    scanned; the first criterion that matches contributes its points.
    Point tables are pre-scaled to the category weight, so the final
    score is the plain sum of contributions clamped to 0–100.

    Scoring is a pure function of ``(facts, rubric)``: no clock, no
    randomness, no I/O.
    """

    def score(self, facts: FactRecord, rubric: Optional[RubricConfig] = None) -> ScoreResult:
        """Compute score and tier; ``rubric=None`` uses the system default."""
        if rubric is None:
            rubric = default_rubric()

        breakdown: List[CategoryScore] = [
            self._score_category(category, facts, rubric) for category in BantCategory
        ]
        total = sum(item.points for item in breakdown)

        # Clamp after all arithmetic
        score = min(MAX_SCORE, max(MIN_SCORE, total))
        return ScoreResult(score=score, tier=classify_tier(score, rubric), breakdown=breakdown)

    def _score_category(
        self, category: BantCategory, facts: FactRecord, rubric: RubricConfig
    ) -> CategoryScore:
        criteria = rubric.criteria_for(category)
        value = self.resolve_value(category, facts, criteria)
        if value is None:
            return CategoryScore(category=category)

        for criterion in criteria:
            if criterion.matches(value):
                return CategoryScore(
                    category=category,
                    value=value,
                    matched_label=criterion.label or None,
                    points=criterion.points,
                )

        logger.debug("No %s criterion matched value %r", category.value, value)
        return CategoryScore(category=category, value=value)

    @staticmethod
    def resolve_value(
        category: BantCategory, facts: FactRecord, criteria: Sequence[Criterion]
    ) -> Union[float, str, None]:
        """Return the value of *category* in the form its criteria match on."""
        if category == BantCategory.budget:
            return fact_normalizer.parse_budget_amount(facts.budget)
        if category == BantCategory.contact:
            return fact_normalizer.classify_contact(facts.contact)

        phrase = getattr(facts, category.value)
        return _resolve_tag(phrase, criteria, _TAG_CLASSIFIERS.get(category))
