import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from app.core.config import settings
from app.core.constants import LOAD_ASSIGNMENT_MODE
from app.core.exceptions import ConversationNotFoundError
from app.models.conversation import Conversation
from app.models.lead_facts import LeadFacts
from app.repositories.conversation_repository import ConversationRepository
from app.repositories.fact_repository import FactRepository
from app.repositories.member_repository import MemberRepository
from app.schemas.common import LeadTier, MessageSender, QualificationStage
from app.schemas.qualification import QualificationStatusResponse, TurnOutcome
from app.services import question_sequencer
from app.services.agent_assignment import AssignmentBalancer
from app.services.bant_scoring import BantScoringEngine
from app.services.fact_extractor import FactExtractor
from app.services.rubric_config_service import RubricConfigService

logger = logging.getLogger(__name__)


class QualificationService:
    """Runs one qualification turn end to end.

    Dependencies are injected via the constructor so the class remains
    stateless and easily testable; repositories are passed per call and
    share the request's session, so a turn commits as one unit.
    """

    def __init__(
        self,
        extractor: FactExtractor,
        scoring_engine: BantScoringEngine,
        balancer: AssignmentBalancer,
        rubric_service: RubricConfigService,
    ) -> None:
        self._extractor = extractor
        self._scoring_engine = scoring_engine
        self._balancer = balancer
        self._rubric_service = rubric_service

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def process_turn(
        self,
        conversation_id: UUID,
        conversation_repo: ConversationRepository,
        fact_repo: FactRepository,
        member_repo: MemberRepository,
        user_message: Optional[str] = None,
    ) -> TurnOutcome:
        """Process one inbound user turn.

        Steps:
        1. Record the user turn and load the fact record (created on the
           first user turn), then commit
        2. Return the stored result if qualification already completed
        3. Extract facts from the recent window with no transaction open
        4. In a second transaction, persist the merge and either record
           the next question as an AI turn or score, tier and assign the
           lead

        Extraction failures never raise; the outcome carries
        ``extraction_failed=True`` and the prior facts.

        Raises:
            ConversationNotFoundError: If the conversation does not exist.
        """
        conversation = await self._get_conversation(conversation_id, conversation_repo)

        async with fact_repo.atomic():
            if user_message:
                await conversation_repo.add_message(
                    conversation_id, MessageSender.user, user_message
                )
            row = await fact_repo.get_or_create(conversation_id)
            prior = fact_repo.to_fact_record(row)

            if prior.is_completed:
                return self._completed_outcome(conversation, row)

            rubric = await self._rubric_service.resolve(
                conversation.organization_id, conversation.agent_id
            )
            window = await conversation_repo.get_recent_turns(
                conversation_id, settings.EXTRACTION_WINDOW_SIZE
            )

        # The external call is the only suspension point; no connection is held
        extraction = await self._extractor.extract(
            prior, window, rubric_description=rubric.scoring_prompt
        )
        facts = extraction.facts

        async with fact_repo.atomic():
            row = await fact_repo.lock_for_update(conversation_id)
            if row.completed_at is not None:
                # An overlapping turn completed the record first
                return self._completed_outcome(conversation, row)

            if not extraction.failed and facts != prior:
                await fact_repo.save_facts(row, facts)

            question = question_sequencer.next_question(facts, rubric.questions)
            if question is not None:
                await conversation_repo.add_message(
                    conversation_id, MessageSender.ai, question.text
                )
                return TurnOutcome(
                    conversation_id=conversation_id,
                    facts=facts,
                    question=question,
                    extraction_failed=extraction.failed,
                    usage=extraction.usage,
                )

            # Qualification complete: score this exact snapshot
            result = self._scoring_engine.score(facts, rubric)
            completed_at = datetime.now(timezone.utc)
            await fact_repo.mark_completed(row, completed_at, result)

            assigned_agent_id = await self._balancer.assign(
                conversation.organization_id, member_repo
            )
            if assigned_agent_id is not None:
                await conversation_repo.assign_to_human(conversation, assigned_agent_id)

        logger.info(
            "Conversation %s qualified: score=%d tier=%s assigned_to=%s",
            conversation_id,
            result.score,
            result.tier.value,
            assigned_agent_id,
        )
        return TurnOutcome(
            conversation_id=conversation_id,
            facts=facts.model_copy(update={"completed_at": completed_at}),
            completed=True,
            score=result.score,
            tier=result.tier,
            assigned_agent_id=assigned_agent_id,
            extraction_failed=extraction.failed,
            usage=extraction.usage,
        )

    async def get_status(
        self,
        conversation_id: UUID,
        conversation_repo: ConversationRepository,
        fact_repo: FactRepository,
    ) -> QualificationStatusResponse:
        """Read-only snapshot of where a conversation stands."""
        conversation = await self._get_conversation(conversation_id, conversation_repo)
        rubric = await self._rubric_service.resolve(
            conversation.organization_id, conversation.agent_id
        )
        row = await fact_repo.get_by_conversation(conversation_id)
        facts = fact_repo.to_fact_record(row)

        stage = question_sequencer.current_stage(facts)
        if facts.is_empty and not facts.is_completed:
            # No user turn captured anything yet
            stage = QualificationStage.start

        return QualificationStatusResponse(
            conversation_id=conversation_id,
            facts=facts,
            stage=stage,
            next_question=question_sequencer.next_question(facts, rubric.questions),
            missing_fields=question_sequencer.missing_fields(facts),
            score=row.score if row is not None else None,
            tier=LeadTier(row.tier) if row is not None and row.tier else None,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    async def _get_conversation(
        conversation_id: UUID, conversation_repo: ConversationRepository
    ) -> Conversation:
        conversation = await conversation_repo.get_by_id(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(f"Conversation {conversation_id} not found")
        return conversation

    @staticmethod
    def _completed_outcome(conversation: Conversation, row: LeadFacts) -> TurnOutcome:
        assigned = (
            conversation.assigned_to
            if conversation.assignment_mode == LOAD_ASSIGNMENT_MODE
            else None
        )
        return TurnOutcome(
            conversation_id=conversation.conversation_id,
            facts=FactRepository.to_fact_record(row),
            completed=True,
            score=row.score,
            tier=LeadTier(row.tier) if row.tier else None,
            assigned_agent_id=assigned,
        )
