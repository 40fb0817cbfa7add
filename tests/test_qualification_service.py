import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from app.core.exceptions import ConversationNotFoundError, ExtractionServiceError
from app.models.conversation import Conversation
from app.models.lead_facts import LeadFacts
from app.repositories.conversation_repository import ConversationRepository
from app.repositories.fact_repository import FactRepository
from app.repositories.member_repository import AgentLoad
from app.schemas.common import LeadTier, MessageSender, QualificationStage
from app.schemas.facts import TokenUsage, Turn
from app.services.agent_assignment import AssignmentBalancer
from app.services.bant_scoring import BantScoringEngine
from app.services.fact_extractor import FactExtractor
from app.services.qualification_service import QualificationService
from app.services.rubric_validator import default_rubric


def _session() -> MagicMock:
    db = MagicMock()
    db.flush = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    return db


class InMemoryFactRepository(FactRepository):
    def __init__(self, rows=None):
        super().__init__(_session())
        self.rows = rows or {}

    async def get_by_conversation(self, conversation_id):
        return self.rows.get(conversation_id)

    async def get_or_create(self, conversation_id):
        if conversation_id not in self.rows:
            self.rows[conversation_id] = LeadFacts(conversation_id=conversation_id)
        return self.rows[conversation_id]

    async def lock_for_update(self, conversation_id):
        return self.rows[conversation_id]


class InMemoryConversationRepository(ConversationRepository):
    def __init__(self, conversation=None, turns=None):
        super().__init__(_session())
        self.conversation = conversation
        self.turns = list(turns or [])

    async def get_by_id(self, conversation_id):
        if self.conversation and self.conversation.conversation_id == conversation_id:
            return self.conversation
        return None

    async def get_recent_turns(self, conversation_id, limit):
        return self.turns[-limit:]

    async def add_message(self, conversation_id, sender, content):
        self.turns.append(Turn(sender=sender, content=content))


def _conversation() -> Conversation:
    return Conversation(
        conversation_id=uuid4(),
        organization_id=uuid4(),
        agent_id=uuid4(),
        assignment_mode="ai",
        status="active",
    )


def _extraction_client(*payloads) -> AsyncMock:
    usage = TokenUsage(prompt_tokens=50, completion_tokens=10, total_tokens=60)
    client = AsyncMock()
    client.complete_json = AsyncMock(side_effect=[(json.dumps(p), usage) for p in payloads])
    return client


def _member_repo(agent_ids=()):
    repo = AsyncMock()
    repo.get_eligible_agents_with_load = AsyncMock(
        return_value=[
            AgentLoad(
                user_id=uid,
                joined_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
                active_conversations=i,
            )
            for i, uid in enumerate(agent_ids)
        ]
    )
    return repo


def _rubric_service():
    service = AsyncMock()
    service.resolve = AsyncMock(return_value=default_rubric())
    return service


def _service(client, rubric_service=None) -> QualificationService:
    return QualificationService(
        extractor=FactExtractor(client),
        scoring_engine=BantScoringEngine(),
        balancer=AssignmentBalancer(),
        rubric_service=rubric_service or _rubric_service(),
    )


FULL_ANSWER = {
    "budget": "$20-25M",
    "authority": "sole decision maker",
    "need": "immediate",
    "timeline": "this_month",
    "contact": {
        "full_name": "Jane Doe",
        "phone": "+971501234567",
        "email": "jane.doe@gmail.com",
    },
}


class TestProcessTurn:
    @pytest.mark.asyncio
    async def test_first_turn_asks_next_gap(self):
        conversation = _conversation()
        conv_repo = InMemoryConversationRepository(conversation)
        fact_repo = InMemoryFactRepository()
        service = _service(_extraction_client({"budget": "about 2M"}))

        outcome = await service.process_turn(
            conversation.conversation_id,
            conv_repo,
            fact_repo,
            _member_repo(),
            user_message="Hi, my budget is about 2M",
        )

        assert not outcome.completed
        assert outcome.question.stage == QualificationStage.authority
        assert outcome.facts.budget == "about 2M"
        assert outcome.usage.total_tokens == 60
        assert fact_repo.rows[conversation.conversation_id].budget == "about 2M"
        assert conv_repo.turns[-1].sender == MessageSender.user
        fact_repo._db.commit.assert_awaited()

    @pytest.mark.asyncio
    async def test_rubric_is_resolved_for_the_conversation(self):
        conversation = _conversation()
        rubric_service = _rubric_service()
        client = _extraction_client({})
        service = _service(client, rubric_service)

        await service.process_turn(
            conversation.conversation_id,
            InMemoryConversationRepository(conversation),
            InMemoryFactRepository(),
            _member_repo(),
            user_message="hello",
        )

        rubric_service.resolve.assert_awaited_once_with(
            conversation.organization_id, conversation.agent_id
        )
        system_prompt, _ = client.complete_json.await_args.args
        assert default_rubric().scoring_prompt in system_prompt

    @pytest.mark.asyncio
    async def test_completion_scores_and_assigns(self):
        conversation = _conversation()
        conv_repo = InMemoryConversationRepository(conversation)
        fact_repo = InMemoryFactRepository()
        least_loaded, busier = uuid4(), uuid4()
        service = _service(_extraction_client(FULL_ANSWER))

        outcome = await service.process_turn(
            conversation.conversation_id,
            conv_repo,
            fact_repo,
            _member_repo([least_loaded, busier]),
            user_message="Everything at once",
        )

        assert outcome.completed
        assert outcome.question is None
        assert outcome.score == 92
        assert outcome.tier == LeadTier.priority
        assert outcome.assigned_agent_id == least_loaded
        assert outcome.facts.completed_at is not None

        row = fact_repo.rows[conversation.conversation_id]
        assert row.completed_at is not None
        assert row.score == 92
        assert row.tier == "priority"
        assert conversation.assigned_to == least_loaded
        assert conversation.assignment_mode == "human"

    @pytest.mark.asyncio
    async def test_completion_without_agents_leaves_lead_unassigned(self):
        conversation = _conversation()
        service = _service(_extraction_client(FULL_ANSWER))

        outcome = await service.process_turn(
            conversation.conversation_id,
            InMemoryConversationRepository(conversation),
            InMemoryFactRepository(),
            _member_repo([]),
            user_message="Everything at once",
        )

        assert outcome.completed
        assert outcome.assigned_agent_id is None
        assert conversation.assigned_to is None

    @pytest.mark.asyncio
    async def test_completed_conversation_is_not_reprocessed(self):
        conversation = _conversation()
        conv_repo = InMemoryConversationRepository(conversation)
        fact_repo = InMemoryFactRepository()
        client = _extraction_client(FULL_ANSWER)
        service = _service(client)
        members = _member_repo([uuid4()])

        first = await service.process_turn(
            conversation.conversation_id, conv_repo, fact_repo, members, user_message="all"
        )
        second = await service.process_turn(
            conversation.conversation_id,
            conv_repo,
            fact_repo,
            members,
            user_message="actually my budget is 1M",
        )

        assert client.complete_json.await_count == 1
        assert second.completed
        assert second.score == first.score
        assert second.tier == first.tier
        assert second.facts.budget == "$20-25M"
        assert second.assigned_agent_id == first.assigned_agent_id

    @pytest.mark.asyncio
    async def test_extraction_failure_keeps_state(self):
        conversation = _conversation()
        fact_repo = InMemoryFactRepository()
        client = AsyncMock()
        client.complete_json = AsyncMock(side_effect=ExtractionServiceError("down"))
        service = _service(client)

        outcome = await service.process_turn(
            conversation.conversation_id,
            InMemoryConversationRepository(conversation),
            fact_repo,
            _member_repo(),
            user_message="2M",
        )

        assert outcome.extraction_failed
        assert outcome.question.stage == QualificationStage.budget
        assert fact_repo.rows[conversation.conversation_id].budget is None

    @pytest.mark.asyncio
    async def test_unknown_conversation(self):
        service = _service(_extraction_client())

        with pytest.raises(ConversationNotFoundError):
            await service.process_turn(
                uuid4(),
                InMemoryConversationRepository(None),
                InMemoryFactRepository(),
                _member_repo(),
                user_message="hi",
            )

    @pytest.mark.asyncio
    async def test_asked_question_is_recorded_for_the_next_extraction(self):
        conversation = _conversation()
        conv_repo = InMemoryConversationRepository(conversation)
        fact_repo = InMemoryFactRepository()
        client = _extraction_client({"budget": "50-60M"}, {"authority": "Yes I am"})
        service = _service(client)

        first = await service.process_turn(
            conversation.conversation_id, conv_repo, fact_repo, _member_repo(), "50-60M"
        )
        await service.process_turn(
            conversation.conversation_id, conv_repo, fact_repo, _member_repo(), "Yes I am"
        )

        _, transcript = client.complete_json.await_args.args
        assert transcript == (
            "User: 50-60M\n"
            f"AI: {first.question.text}\n"
            "User: Yes I am"
        )
        assert first.question.text.startswith("Will you be the sole decision maker")
        assert conv_repo.turns[-1] == Turn(
            sender=MessageSender.ai,
            content="Are you looking for a property for personal use, investment, or resale?",
        )

    @pytest.mark.asyncio
    async def test_user_turn_is_committed_before_extraction(self):
        conversation = _conversation()
        conv_repo = InMemoryConversationRepository(conversation)
        fact_repo = InMemoryFactRepository()
        commits_seen = []

        async def complete_json(system_prompt, transcript):
            commits_seen.append(fact_repo._db.commit.await_count)
            return json.dumps({"budget": "2M"}), TokenUsage()

        client = AsyncMock()
        client.complete_json = AsyncMock(side_effect=complete_json)

        await _service(client).process_turn(
            conversation.conversation_id, conv_repo, fact_repo, _member_repo(), "2M"
        )

        assert commits_seen == [1]
        assert fact_repo._db.commit.await_count == 2
        assert conv_repo.turns[0] == Turn(sender=MessageSender.user, content="2M")

    @pytest.mark.asyncio
    async def test_record_completed_during_extraction_is_left_alone(self):
        conversation = _conversation()
        conv_repo = InMemoryConversationRepository(conversation)
        fact_repo = InMemoryFactRepository()
        client = _extraction_client({"budget": "9M"})

        async def completed_meanwhile(conversation_id):
            row = fact_repo.rows[conversation_id]
            row.budget = "2M"
            row.completed_at = datetime(2026, 1, 1, tzinfo=timezone.utc)
            row.score = 75
            row.tier = "hot"
            return row

        fact_repo.lock_for_update = completed_meanwhile

        outcome = await _service(client).process_turn(
            conversation.conversation_id, conv_repo, fact_repo, _member_repo(), "9M"
        )

        assert outcome.completed
        assert outcome.score == 75
        assert fact_repo.rows[conversation.conversation_id].budget == "2M"

    @pytest.mark.asyncio
    async def test_agent_question_wording_is_used(self):
        conversation = _conversation()
        custom = default_rubric().model_copy(
            update={"questions": {QualificationStage.authority: "Who signs off on the purchase?"}}
        )
        rubric_service = _rubric_service()
        rubric_service.resolve = AsyncMock(return_value=custom)
        conv_repo = InMemoryConversationRepository(conversation)

        outcome = await _service(
            _extraction_client({"budget": "2M"}), rubric_service
        ).process_turn(
            conversation.conversation_id,
            conv_repo,
            InMemoryFactRepository(),
            _member_repo(),
            user_message="2M",
        )

        assert outcome.question.stage == QualificationStage.authority
        assert outcome.question.text == "Who signs off on the purchase?"
        assert conv_repo.turns[-1].content == "Who signs off on the purchase?"


class TestGetStatus:
    @pytest.mark.asyncio
    async def test_new_conversation_is_at_start(self):
        conversation = _conversation()
        service = _service(_extraction_client())

        status = await service.get_status(
            conversation.conversation_id,
            InMemoryConversationRepository(conversation),
            InMemoryFactRepository(),
        )

        assert status.stage == QualificationStage.start
        assert status.next_question.stage == QualificationStage.budget
        assert len(status.missing_fields) == 7
        assert status.score is None

    @pytest.mark.asyncio
    async def test_partial_conversation(self):
        conversation = _conversation()
        row = LeadFacts(conversation_id=conversation.conversation_id, budget="2M", need="home")
        service = _service(_extraction_client())

        status = await service.get_status(
            conversation.conversation_id,
            InMemoryConversationRepository(conversation),
            InMemoryFactRepository({conversation.conversation_id: row}),
        )

        assert status.stage == QualificationStage.authority
        assert "budget" not in status.missing_fields
        assert "authority" in status.missing_fields
