from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select

from app.core.constants import LOAD_ASSIGNMENT_MODE
from app.models.conversation import Conversation, Message
from app.repositories.base import BaseRepository
from app.schemas.common import MessageSender
from app.schemas.facts import Turn


class ConversationRepository(BaseRepository):
    """Encapsulates queries against ``conversations`` and ``messages``."""

    async def get_by_id(self, conversation_id: UUID) -> Optional[Conversation]:
        """Return a single conversation by primary key, or ``None``."""
        result = await self._db.execute(
            select(Conversation).where(Conversation.conversation_id == conversation_id)
        )
        return result.scalar_one_or_none()

    async def get_recent_turns(self, conversation_id: UUID, limit: int) -> List[Turn]:
        """Return the last *limit* turns in chronological order."""
        result = await self._db.execute(
            select(Message.sender, Message.content)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.desc(), Message.message_id.desc())
            .limit(limit)
        )
        rows = list(result.all())
        rows.reverse()
        return [
            Turn(sender=MessageSender(sender), content=content)
            for sender, content in rows
        ]

    async def assign_to_human(self, conversation: Conversation, user_id: UUID) -> None:
        """Hand the conversation over to a human agent."""
        conversation.assigned_to = user_id
        conversation.assignment_mode = LOAD_ASSIGNMENT_MODE
        conversation.assigned_at = datetime.now(timezone.utc)
        await self._db.flush()

    async def add_message(
        self, conversation_id: UUID, sender: MessageSender, content: str
    ) -> Message:
        """Append a turn to the conversation transcript."""
        message = Message(
            conversation_id=conversation_id, sender=sender.value, content=content
        )
        self._db.add(message)
        await self._db.flush()
        return message
