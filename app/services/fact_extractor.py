import json
import logging
import re
from typing import Any, Dict, Optional, Sequence

from app.core.config import settings
from app.core.constants import CONTACT_FIELDS, CONTACT_KEY_ALIASES, NULL_LIKE_VALUES
from app.core.exceptions import ExtractionError, ExtractionParseError
from app.schemas.facts import ContactInfo, ExtractionOutcome, FactRecord, TokenUsage, Turn
from app.services.extraction_client import ExtractionClient
from app.services.extraction_prompts import build_system_prompt, format_transcript

logger = logging.getLogger(__name__)

_BANT_FIELDS = ("budget", "authority", "need", "timeline")
_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def merge_facts(prior: FactRecord, extracted: FactRecord) -> FactRecord:
    """Overlay newly extracted values on the prior record.

    A field takes the extracted value only when one was stated; a null
    extraction never erases a known value.  Contact sub-fields merge
    independently.  A completed record is returned unchanged.
    """
    if prior.is_completed:
        return prior

    merged: Dict[str, Any] = {
        field: getattr(extracted, field) if getattr(extracted, field) is not None
        else getattr(prior, field)
        for field in _BANT_FIELDS
    }
    merged["contact"] = ContactInfo(
        **{
            field: getattr(extracted.contact, field)
            if getattr(extracted.contact, field) is not None
            else getattr(prior.contact, field)
            for field in CONTACT_FIELDS
        }
    )
    return FactRecord(**merged, completed_at=prior.completed_at)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _clean(value: Any) -> Optional[str]:
    """Normalise one extracted value; anything meaning "not stated" becomes None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return f"{value:g}" if isinstance(value, float) else str(value)
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lower() in NULL_LIKE_VALUES:
            return None
        return stripped
    logger.debug("Ignoring non-scalar extracted value %r", value)
    return None


def _parse_contact(payload: Dict[str, Any]) -> ContactInfo:
    found: Dict[str, Optional[str]] = {}
    sources = [payload]
    if isinstance(payload.get("contact"), dict):
        # Nested object wins over flattened top-level keys
        sources.append(payload["contact"])
    for source in sources:
        for key, value in source.items():
            field = CONTACT_KEY_ALIASES.get(key)
            if field is None:
                continue
            cleaned = _clean(value)
            if cleaned is not None:
                found[field] = cleaned
    return ContactInfo(**found)


def parse_extraction(raw: str) -> FactRecord:
    """Parse the service's JSON answer into a (partial) fact record.

    Raises:
        ExtractionParseError: the answer is not a JSON object.
    """
    text = _CODE_FENCE.sub("", (raw or "").strip())
    try:
        payload = json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        raise ExtractionParseError(f"Extraction output is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise ExtractionParseError(
            f"Expected a JSON object from extraction, got {type(payload).__name__}"
        )

    return FactRecord(
        **{field: _clean(payload.get(field)) for field in _BANT_FIELDS},
        contact=_parse_contact(payload),
    )


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------


class FactExtractor:
    """Extract BANT + contact facts from a bounded conversation window.

    Extraction is order-agnostic: whatever the user states is captured,
    whichever question was asked.  Failures never corrupt state: the
    prior record comes back unchanged with ``failed=True``.
    """

    def __init__(self, client: ExtractionClient, window_size: Optional[int] = None) -> None:
        self._client = client
        self._window_size = window_size or settings.EXTRACTION_WINDOW_SIZE

    async def extract(
        self,
        prior_facts: FactRecord,
        window: Sequence[Turn],
        rubric_description: Optional[str] = None,
    ) -> ExtractionOutcome:
        """Merge the facts stated in *window* into *prior_facts*."""
        if prior_facts.is_completed:
            return ExtractionOutcome(facts=prior_facts)

        recent = list(window)[-self._window_size:]
        if not any(turn.is_user for turn in recent):
            logger.debug("No user turns in window; skipping extraction")
            return ExtractionOutcome(facts=prior_facts)

        usage = TokenUsage()
        try:
            raw, usage = await self._client.complete_json(
                build_system_prompt(rubric_description),
                format_transcript(recent),
            )
            extracted = parse_extraction(raw)
        except ExtractionError as exc:
            logger.warning("Fact extraction did not advance this turn: %s", exc.detail)
            return ExtractionOutcome(
                facts=prior_facts, failed=True, error=exc.detail, usage=usage
            )

        merged = merge_facts(prior_facts, extracted)
        if merged != prior_facts:
            logger.info(
                "Extracted facts updated: %s",
                ", ".join(self._changed_fields(prior_facts, merged)),
            )
        return ExtractionOutcome(facts=merged, usage=usage)

    @staticmethod
    def _changed_fields(before: FactRecord, after: FactRecord):
        changed = [f for f in _BANT_FIELDS if getattr(before, f) != getattr(after, f)]
        changed.extend(
            f"contact.{f}"
            for f in CONTACT_FIELDS
            if getattr(before.contact, f) != getattr(after.contact, f)
        )
        return changed
