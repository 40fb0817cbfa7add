import itertools
import json
from unittest.mock import AsyncMock

import pytest

from app.core.exceptions import ExtractionParseError, ExtractionServiceError
from app.schemas.common import MessageSender
from app.schemas.facts import ContactInfo, FactRecord, TokenUsage, Turn
from app.services.fact_extractor import FactExtractor, merge_facts, parse_extraction


def _user(text: str) -> Turn:
    return Turn(sender=MessageSender.user, content=text)


def _ai(text: str) -> Turn:
    return Turn(sender=MessageSender.ai, content=text)


def _client_returning(payload, usage: TokenUsage = None) -> AsyncMock:
    client = AsyncMock()
    raw = payload if isinstance(payload, str) else json.dumps(payload)
    usage = usage or TokenUsage(prompt_tokens=120, completion_tokens=30, total_tokens=150)
    client.complete_json = AsyncMock(return_value=(raw, usage))
    return client


class TestMergeFacts:
    """Merging never loses a known value."""

    def test_null_never_overwrites_known_value(self):
        prior = FactRecord(budget="2M", contact=ContactInfo(full_name="Jane"))

        merged = merge_facts(prior, FactRecord(need="home"))

        assert merged.budget == "2M"
        assert merged.need == "home"
        assert merged.contact.full_name == "Jane"

    def test_restated_value_replaces_prior(self):
        prior = FactRecord(budget="2M")

        merged = merge_facts(prior, FactRecord(budget="actually 3M"))

        assert merged.budget == "actually 3M"

    def test_contact_sub_fields_merge_independently(self):
        prior = FactRecord(contact=ContactInfo(full_name="Jane", phone="+971501234567"))

        merged = merge_facts(prior, FactRecord(contact=ContactInfo(email="jane.doe@gmail.com")))

        assert merged.contact == ContactInfo(
            full_name="Jane", phone="+971501234567", email="jane.doe@gmail.com"
        )

    def test_completed_record_is_returned_unchanged(self, completed_facts):
        merged = merge_facts(completed_facts, FactRecord(budget="1M"))

        assert merged is completed_facts

    def test_known_fields_never_decrease(self):
        prior = FactRecord(budget="2M", authority="me", timeline="ASAP")
        for extracted in (FactRecord(), FactRecord(need="home"), FactRecord(budget="5M")):
            merged = merge_facts(prior, extracted)
            for field in ("budget", "authority", "need", "timeline"):
                if getattr(prior, field) is not None:
                    assert getattr(merged, field) is not None

    def test_capture_order_does_not_matter(self):
        extractions = [
            FactRecord(budget="2M"),
            FactRecord(timeline="next month"),
            FactRecord(contact=ContactInfo(email="jane.doe@gmail.com")),
            FactRecord(authority="just me", contact=ContactInfo(full_name="Jane")),
        ]

        results = set()
        for order in itertools.permutations(extractions):
            facts = FactRecord()
            for extracted in order:
                facts = merge_facts(facts, extracted)
            results.add(facts.model_dump_json())

        assert len(results) == 1


class TestParseExtraction:
    def test_plain_json(self):
        facts = parse_extraction(
            json.dumps(
                {
                    "budget": "$20-25M",
                    "authority": None,
                    "need": "investment",
                    "timeline": None,
                    "contact": {"full_name": "Jane Doe", "phone": None, "email": None},
                }
            )
        )

        assert facts.budget == "$20-25M"
        assert facts.need == "investment"
        assert facts.authority is None
        assert facts.contact == ContactInfo(full_name="Jane Doe")

    def test_code_fences_are_stripped(self):
        facts = parse_extraction('```json\n{"budget": "2M"}\n```')

        assert facts.budget == "2M"

    def test_null_like_strings_become_none(self):
        facts = parse_extraction(
            json.dumps({"budget": "null", "authority": "N/A", "need": "  ", "timeline": "unknown"})
        )

        assert facts == FactRecord()

    def test_numbers_are_kept_as_text(self):
        facts = parse_extraction(json.dumps({"budget": 2500000, "timeline": 1.5}))

        assert facts.budget == "2500000"
        assert facts.timeline == "1.5"

    def test_contact_key_aliases(self):
        facts = parse_extraction(
            json.dumps(
                {
                    "contact": {"fullName": "Jane Doe", "mobileNumber": "+971501234567"},
                    "email_address": "jane.doe@gmail.com",
                }
            )
        )

        assert facts.contact == ContactInfo(
            full_name="Jane Doe", phone="+971501234567", email="jane.doe@gmail.com"
        )

    def test_nested_contact_wins_over_top_level(self):
        facts = parse_extraction(
            json.dumps({"name": "J", "contact": {"name": "Jane Doe"}})
        )

        assert facts.contact.full_name == "Jane Doe"

    def test_invalid_json_raises(self):
        with pytest.raises(ExtractionParseError):
            parse_extraction("I could not find anything")

    def test_non_object_raises(self):
        with pytest.raises(ExtractionParseError):
            parse_extraction("[1, 2, 3]")


class TestFactExtractor:
    @pytest.mark.asyncio
    async def test_extracts_and_merges(self):
        client = _client_returning({"budget": "$20-25M", "authority": "sole decision maker"})
        extractor = FactExtractor(client)

        outcome = await extractor.extract(
            FactRecord(need="immediate"),
            [_ai("What's your budget range?"), _user("About 20-25M and I decide alone")],
        )

        assert not outcome.failed
        assert outcome.facts.budget == "$20-25M"
        assert outcome.facts.authority == "sole decision maker"
        assert outcome.facts.need == "immediate"
        assert outcome.usage.total_tokens == 150

    @pytest.mark.asyncio
    async def test_rubric_description_is_sent_as_context(self):
        client = _client_returning({})
        extractor = FactExtractor(client)

        await extractor.extract(FactRecord(), [_user("hi")], rubric_description="RUBRIC-XYZ")

        system_prompt, transcript = client.complete_json.await_args.args
        assert "RUBRIC-XYZ" in system_prompt
        assert transcript == "User: hi"

    @pytest.mark.asyncio
    async def test_window_is_bounded(self):
        client = _client_returning({})
        extractor = FactExtractor(client, window_size=2)

        await extractor.extract(
            FactRecord(), [_user("first"), _ai("second"), _user("third")]
        )

        _, transcript = client.complete_json.await_args.args
        assert transcript == "AI: second\nUser: third"

    @pytest.mark.asyncio
    async def test_no_user_turns_skips_service(self):
        client = _client_returning({"budget": "9M"})
        extractor = FactExtractor(client)
        prior = FactRecord(budget="2M")

        outcome = await extractor.extract(prior, [_ai("What's your budget range?")])

        client.complete_json.assert_not_awaited()
        assert outcome.facts == prior
        assert not outcome.failed

    @pytest.mark.asyncio
    async def test_completed_record_skips_service(self, completed_facts):
        client = _client_returning({"budget": "9M"})
        extractor = FactExtractor(client)

        outcome = await extractor.extract(completed_facts, [_user("actually 9M")])

        client.complete_json.assert_not_awaited()
        assert outcome.facts == completed_facts

    @pytest.mark.asyncio
    async def test_service_failure_keeps_prior_facts(self):
        client = AsyncMock()
        client.complete_json = AsyncMock(side_effect=ExtractionServiceError("timed out"))
        extractor = FactExtractor(client)
        prior = FactRecord(budget="2M")

        outcome = await extractor.extract(prior, [_user("I need it ASAP")])

        assert outcome.failed
        assert outcome.error == "timed out"
        assert outcome.facts == prior

    @pytest.mark.asyncio
    async def test_unparsable_output_keeps_prior_facts(self):
        client = _client_returning("Sorry, I can't help with that")
        extractor = FactExtractor(client)
        prior = FactRecord(timeline="ASAP")

        outcome = await extractor.extract(prior, [_user("2M budget")])

        assert outcome.failed
        assert outcome.facts == prior
        assert outcome.usage.total_tokens == 150
