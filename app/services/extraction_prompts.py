"""
Prompt templates for BANT fact extraction.

Only the information contract matters to the rest of the engine: the
service must answer with a single JSON object shaped like
``EXTRACTION_JSON_SHAPE`` and use ``null`` for anything the user has not
explicitly said.
"""

from typing import Iterable, Optional

from app.schemas.common import MessageSender
from app.schemas.facts import Turn

EXTRACTION_JSON_SHAPE = """{
  "budget": "exact phrase from the user or null",
  "authority": "exact phrase from the user or null",
  "need": "exact phrase from the user or null",
  "timeline": "exact phrase from the user or null",
  "contact": {
    "full_name": "string or null",
    "phone": "string or null",
    "email": "string or null"
  }
}"""

EXTRACTION_SYSTEM_PROMPT = f"""You are a BANT information extractor for real estate conversations.

Extract Budget, Authority, Need, Timeline and Contact details from the
conversation below.

RULES:
1. ONLY extract from lines starting with "User:". Never take values from
   "AI:" or "Agent:" lines, even if they repeat or suggest an answer.
2. ONLY extract information the user has EXPLICITLY provided. Do not
   infer or guess. If a field has not been answered, return null.
3. A short reply answers the question just asked by the AI: "50-60M"
   after a budget question is a budget, "Yes I am" after a decision-maker
   question is an authority answer, "for living" is a need, "3 months"
   is a timeline.
4. The user may answer topics in any order or several at once; capture
   every field they state.
5. If the user restates or corrects a field, return the latest value.
6. Copy the user's own words; do not convert currencies or dates.

Return ONLY a JSON object with this shape:
{EXTRACTION_JSON_SHAPE}"""

_RUBRIC_CONTEXT_HEADER = (
    "For context, this organization scores leads with the rubric below. "
    "Use it only to recognise relevant answers; do not score."
)

_SPEAKER_LABELS = {
    MessageSender.user: "User",
    MessageSender.ai: "AI",
    MessageSender.agent: "Agent",
}


def build_system_prompt(rubric_description: Optional[str] = None) -> str:
    """Return the extraction instructions, with optional rubric context."""
    if not rubric_description:
        return EXTRACTION_SYSTEM_PROMPT
    return f"{EXTRACTION_SYSTEM_PROMPT}\n\n{_RUBRIC_CONTEXT_HEADER}\n\n{rubric_description}"


def format_transcript(turns: Iterable[Turn]) -> str:
    """Render turns as ``Speaker: text`` lines, oldest first."""
    return "\n".join(
        f"{_SPEAKER_LABELS[turn.sender]}: {turn.content.strip()}" for turn in turns
    )
