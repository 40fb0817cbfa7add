from uuid import UUID

from fastapi import APIRouter, Depends

from app.api.deps import (
    get_conversation_repo,
    get_fact_repo,
    get_member_repo,
    get_qualification_service,
)
from app.repositories.conversation_repository import ConversationRepository
from app.repositories.fact_repository import FactRepository
from app.repositories.member_repository import MemberRepository
from app.schemas.qualification import (
    QualificationStatusResponse,
    TurnOutcome,
    TurnRequest,
)
from app.services.qualification_service import QualificationService

router = APIRouter(prefix="/conversations", tags=["Qualification"])


@router.post("/{conversation_id}/turns", response_model=TurnOutcome)
async def process_turn(
    conversation_id: UUID,
    turn: TurnRequest,
    service: QualificationService = Depends(get_qualification_service),
    conversation_repo: ConversationRepository = Depends(get_conversation_repo),
    fact_repo: FactRepository = Depends(get_fact_repo),
    member_repo: MemberRepository = Depends(get_member_repo),
) -> TurnOutcome:
    """Record one user turn and return the next question or the completion result.

    Business logic is delegated to :class:`QualificationService`.
    """
    return await service.process_turn(
        conversation_id,
        conversation_repo=conversation_repo,
        fact_repo=fact_repo,
        member_repo=member_repo,
        user_message=turn.content,
    )


@router.get("/{conversation_id}/qualification", response_model=QualificationStatusResponse)
async def get_qualification(
    conversation_id: UUID,
    service: QualificationService = Depends(get_qualification_service),
    conversation_repo: ConversationRepository = Depends(get_conversation_repo),
    fact_repo: FactRepository = Depends(get_fact_repo),
) -> QualificationStatusResponse:
    return await service.get_status(
        conversation_id,
        conversation_repo=conversation_repo,
        fact_repo=fact_repo,
    )
