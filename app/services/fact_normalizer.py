"""
Normalisation of captured BANT phrases into rubric-matchable values.

The fact record keeps the user's own words ("around 30 to 50 million",
"my wife and I", "within 60 days").  Scoring needs a number for budget
and a type tag for everything else; the helpers here provide both.
All functions are pure and deterministic.
"""

import logging
import re
from typing import Optional

from pydantic import EmailStr, TypeAdapter, ValidationError

from app.schemas.facts import ContactInfo

logger = logging.getLogger(__name__)


# ── Budget ────────────────────────────────────────────────────────────────────

_MULTIPLIERS = {
    "k": 1_000,
    "thousand": 1_000,
    "m": 1_000_000,
    "mm": 1_000_000,
    "mn": 1_000_000,
    "mil": 1_000_000,
    "million": 1_000_000,
    "millions": 1_000_000,
    "b": 1_000_000_000,
    "bn": 1_000_000_000,
    "billion": 1_000_000_000,
    "billions": 1_000_000_000,
}

_NUMBER = r"\d+(?:\.\d+)?"
_SUFFIX = r"(?:millions?|billions?|thousand|mil|mm|mn|bn|k|m|b)\b"

_RANGE_PATTERN = re.compile(
    rf"(?P<low>{_NUMBER})\s*(?P<low_suffix>{_SUFFIX})?\s*"
    rf"(?:-|–|—|~|to|and)\s*\$?\s*"
    rf"(?P<high>{_NUMBER})\s*(?P<high_suffix>{_SUFFIX})?"
)
_AMOUNT_PATTERN = re.compile(rf"(?P<value>{_NUMBER})\s*(?P<suffix>{_SUFFIX})?")
_UPPER_BOUND_PATTERN = re.compile(r"\b(?:under|below|less than)\b|<")


def _scaled(value: str, suffix: Optional[str]) -> float:
    return float(value) * _MULTIPLIERS.get((suffix or "").lower(), 1)


def parse_budget_amount(text: Optional[str]) -> Optional[float]:
    """Parse a budget phrase into a single amount.

    Ranges resolve to their midpoint; a magnitude written only on the
    upper bound applies to both ends (``"20-25M"`` → 22.5M).  When no
    range is present the first amount carrying a magnitude wins, falling
    back to the first bare number.  A single amount introduced by "under",
    "below" or "less than" resolves to just beneath it, so "under 1M"
    stays out of the band that starts at 1M.
    """
    if not text:
        return None

    cleaned = text.lower()
    cleaned = re.sub(r"(?<=\d),(?=\d{3})", "", cleaned)

    match = _RANGE_PATTERN.search(cleaned)
    if match:
        low_suffix = match.group("low_suffix") or match.group("high_suffix")
        low = _scaled(match.group("low"), low_suffix)
        high = _scaled(match.group("high"), match.group("high_suffix"))
        if low > high:
            low, high = high, low
        return (low + high) / 2

    amounts = list(_AMOUNT_PATTERN.finditer(cleaned))
    if not amounts:
        return None

    chosen = next((a for a in amounts if a.group("suffix")), amounts[0])
    value = _scaled(chosen.group("value"), chosen.group("suffix"))
    if _UPPER_BOUND_PATTERN.search(cleaned[: chosen.start()]):
        return value - 1
    return value


# ── Type tags ─────────────────────────────────────────────────────────────────


def slugify(text: Optional[str]) -> str:
    """``"Sole Decision Maker"`` → ``"sole_decision_maker"``."""
    if not text:
        return ""
    return re.sub(r"[^a-z0-9]+", "_", text.lower()).strip("_")


def _contains_any(text: str, patterns) -> bool:
    return any(re.search(p, text) for p in patterns)


_JOINT_PATTERNS = (
    r"\bmy (wife|husband|spouse|partner|family)\b",
    r"\b(wife|husband|spouse|partner)\b",
    r"\band i\b",
    r"\bjoint(ly)?\b",
    r"\btogether\b",
    r"\bboth of us\b",
    r"\bwe\b",
)
_INFLUENCER_PATTERNS = (
    r"\bboard\b",
    r"\bcommittee\b",
    r"\bapproval\b",
    r"\bboss\b",
    r"\badvis(e|or)\b",
    r"\bconsult",
    r"\brecommend",
)
_END_USER_PATTERNS = (
    r"\bnot (the|a|really)?\s*(sole )?decision",
    r"\bsomeone else\b",
    r"\bnot me\b",
    r"^\s*no\b",
    r"\bi don'?t decide\b",
    r"\bmy (parents|father|mother|dad|mom|mum)\b",
    r"\b(parents|father|mother|dad|mom|mum) (will |would |)(decide|choose|pick|say)",
)
_SOLE_PATTERNS = (
    r"\bsole\b",
    r"\bjust me\b",
    r"\bonly me\b",
    r"\bmyself\b",
    r"\bi('m| am) the decision",
    r"\bi decide\b",
    r"\bmy (own )?decision\b",
    r"\b(owner|ceo|founder)\b",
    r"^\s*(yes|yep|yeah|yup|i am|i'm)\b",
)


def classify_authority(text: Optional[str]) -> Optional[str]:
    """Map an authority phrase to a default authority tag."""
    if not text:
        return None
    lowered = text.lower()
    if _contains_any(lowered, _JOINT_PATTERNS):
        return "joint_decision"
    if _contains_any(lowered, _INFLUENCER_PATTERNS):
        return "influencer"
    if _contains_any(lowered, _END_USER_PATTERNS):
        return "end_user"
    if _contains_any(lowered, _SOLE_PATTERNS):
        return "sole_decision_maker"
    return None


_IMMEDIATE_NEED_PATTERNS = (
    r"\bimmediate",
    r"\basap\b",
    r"\burgent",
    r"\bright (away|now)\b",
    r"\bneed to (move|relocate)\b",
    r"\brelocat",
    r"\blease (is )?expir",
)
_EXPLORING_PATTERNS = (
    r"\bjust (looking|browsing|curious)\b",
    r"\bbrowsing\b",
    r"\bexplor",
    r"\bnot sure\b",
    r"\bcurious\b",
)
_PLANNING_PATTERNS = (
    r"\bplanning\b",
    r"\bfuture\b",
    r"\bsomeday\b",
    r"\bthinking (about|of)\b",
    r"\bconsidering\b",
    r"\bretire",
)
_ACTIVE_SEARCH_PATTERNS = (
    r"\blooking for\b",
    r"\bpersonal\b",
    r"\bresiden",
    r"\bliving\b",
    r"\bhome\b",
    r"\bfamily\b",
    r"\binvest",
    r"\brental\b",
    r"\bresale\b",
    r"\bflip\b",
    r"\boffice\b",
    r"\bcommercial\b",
    r"\bbusiness\b",
    r"\b(condo|apartment|villa|house|townhouse)\b",
)


def classify_need(text: Optional[str]) -> Optional[str]:
    """Map a need/purpose phrase to a default need tag."""
    if not text:
        return None
    lowered = text.lower()
    if _contains_any(lowered, _IMMEDIATE_NEED_PATTERNS):
        return "immediate"
    if _contains_any(lowered, _EXPLORING_PATTERNS):
        return "exploring"
    if _contains_any(lowered, _PLANNING_PATTERNS):
        return "planning"
    if _contains_any(lowered, _ACTIVE_SEARCH_PATTERNS):
        return "active_search"
    return None


_UNIT_DAYS = {"day": 1, "week": 7, "month": 30, "mo": 30, "year": 365, "yr": 365}
_NUMBER_WORDS = {
    "a": 1,
    "an": 1,
    "one": 1,
    "two": 2,
    "couple of": 2,
    "three": 3,
    "few": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
    "eleven": 11,
    "twelve": 12,
}
_COUNT = rf"{_NUMBER}|couple of|{'|'.join(w for w in _NUMBER_WORDS if w != 'couple of')}"
_DURATION_PATTERN = re.compile(
    rf"\b(?P<count>{_COUNT})\s*"
    rf"(?:(?:-|–|to)\s*(?P<upper>{_NUMBER})\s*)?"
    rf"(?P<unit>day|week|month|year|yr|mo)s?\b"
)

_NO_TIMELINE_PATTERNS = (
    r"\bno (rush|hurry|timeline|specific)\b",
    r"\bnot sure\b",
    r"\bdon'?t know\b",
    r"\bsomeday\b",
    r"\bno idea\b",
    r"\bwhenever\b",
)
_THIS_WEEK_PATTERNS = (
    r"\basap\b",
    r"\bimmediate",
    r"\bright (away|now)\b",
    r"\bthis week\b",
    r"\btoday\b",
    r"\btomorrow\b",
    r"\burgent",
)
# Relative keywords, checked after explicit durations
_KEYWORD_DAYS = (
    (r"\bnext week\b", 14),
    (r"\bthis month\b", 30),
    (r"\bend of (the )?month\b", 30),
    (r"\bnext month\b", 60),
    (r"\bthis quarter\b", 90),
    (r"\bnext quarter\b", 180),
    (r"\b(this|within the|end of the|end of) year\b", 365),
    (r"\bnext year\b", 730),
)


def _days_to_timeline_tag(days: float) -> str:
    if days <= 7:
        return "this_week"
    if days <= 31:
        return "this_month"
    if days <= 62:
        return "2_months"
    if days <= 93:
        return "3_months"
    if days <= 186:
        return "6_months"
    if days <= 366:
        return "this_year"
    return "no_timeline"


def timeline_days(text: Optional[str]) -> Optional[float]:
    """Return the horizon in days a timeline phrase describes, if any.

    Duration ranges use their upper bound (``"3-6 months"`` → 180).
    """
    if not text:
        return None
    lowered = text.lower()

    match = _DURATION_PATTERN.search(lowered)
    if match:
        count = match.group("upper") or match.group("count")
        number = _NUMBER_WORDS.get(count)
        if number is None:
            number = float(count)
        return number * _UNIT_DAYS[match.group("unit")]

    for pattern, days in _KEYWORD_DAYS:
        if re.search(pattern, lowered):
            return days
    return None


def classify_timeline(text: Optional[str]) -> Optional[str]:
    """Map a timeline phrase to a default timeline tag."""
    if not text:
        return None
    lowered = text.lower()
    if _contains_any(lowered, _NO_TIMELINE_PATTERNS):
        return "no_timeline"
    if _contains_any(lowered, _THIS_WEEK_PATTERNS):
        return "this_week"
    days = timeline_days(lowered)
    if days is None:
        return None
    return _days_to_timeline_tag(days)


# ── Contact ───────────────────────────────────────────────────────────────────

_EMAIL_ADAPTER = TypeAdapter(EmailStr)
_PHONE_PATTERN = re.compile(r"^\+?[\d\s\-().]{7,24}$")


def is_valid_email(value: Optional[str]) -> bool:
    if not value:
        return False
    try:
        _EMAIL_ADAPTER.validate_python(value.strip())
    except ValidationError:
        return False
    return True


def is_valid_phone(value: Optional[str]) -> bool:
    """Loose E.164-style check: 7–15 digits, common separators only."""
    if not value or not _PHONE_PATTERN.match(value.strip()):
        return False
    digits = re.sub(r"\D", "", value)
    return 7 <= len(digits) <= 15


def classify_contact(contact: Optional[ContactInfo]) -> Optional[str]:
    """Map the captured contact sub-fields to a default contact tag.

    A phone number with neither a name-and-email nor an email returns
    ``None``: the default table has no entry for it.
    """
    if contact is None or contact.is_empty:
        return "anonymous"

    has_name = bool(contact.full_name)
    has_phone = bool(contact.phone)
    has_email = bool(contact.email)

    if has_name and has_phone and has_email:
        if is_valid_phone(contact.phone) and is_valid_email(contact.email):
            return "full_verified"
        return "full_unverified"
    if has_phone and has_email:
        return "phone_email"
    if has_email:
        return "email_only"
    if has_name and not has_phone:
        return "name_only"
    logger.debug("No contact tag for partial contact (phone without email)")
    return None
