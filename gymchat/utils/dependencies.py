from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from gymchat.database.connection import mongo_db_dependency
from gymchat.repositories.conversation_repository import ConversationRepository
from gymchat.services.chat_service import ChatService


async def get_current_participant(x_participant_id: Optional[str] = Header(default=None)) -> str:
    """Caller identity, as asserted by the upstream auth layer."""
    if not x_participant_id or not x_participant_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Participant-Id header",
        )
    return x_participant_id.strip()


def get_chat_service(db = Depends(mongo_db_dependency)) -> ChatService:
    return ChatService(ConversationRepository(db))
