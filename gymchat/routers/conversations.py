from typing import Optional

from fastapi import APIRouter, Depends, Query

from gymchat.schemas.message import ConversationHistory, ConversationList, UnreadTotal
from gymchat.services.chat_service import ChatService
from gymchat.services.conversation_id import derive
from gymchat.utils.dependencies import get_chat_service, get_current_participant


router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.get("", response_model=ConversationList)
async def list_conversations(search: Optional[str] = Query(None, max_length=200), participant_id: str = Depends(get_current_participant), service: ChatService = Depends(get_chat_service)):
    items = await service.list_conversations(participant_id, search=search)
    return {"items": items}


@router.get("/unread", response_model=UnreadTotal)
async def unread_total(participant_id: str = Depends(get_current_participant), service: ChatService = Depends(get_chat_service)):
    return {"unread": await service.unread_total(participant_id)}


@router.get("/{other_id}/messages", response_model=ConversationHistory)
async def open_conversation(other_id: str, participant_id: str = Depends(get_current_participant), service: ChatService = Depends(get_chat_service)):
    messages = await service.open_conversation(participant_id, other_id)
    return {"conversation_id": derive(participant_id, other_id), "items": messages}
