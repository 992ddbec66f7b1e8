import asyncio
import contextlib
import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from gymchat.config.settings import settings
from gymchat.database.connection import mongo_db_dependency
from gymchat.exceptions import MessagingError
from gymchat.repositories.conversation_repository import ConversationRepository
from gymchat.schemas.message import ChatFrame, SendMessageRequest
from gymchat.services.chat_service import ChatService
from gymchat.utils.dependencies import get_chat_service, get_current_participant
from gymchat.utils.realtime_bus import get_bus, participant_channel
from gymchat.utils.websocket_manager import manager


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["chat"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def send_message(body: SendMessageRequest, participant_id: str = Depends(get_current_participant), service: ChatService = Depends(get_chat_service)):
    receiver_id = body.receiver_id or settings.ADMIN_ID
    message = await service.send_message(participant_id, receiver_id, body.content, body.sender_name)
    return {"message": message}


@router.websocket("/ws/{participant_id}")
async def chat_socket(websocket: WebSocket, participant_id: str, db = Depends(mongo_db_dependency)):
    service = ChatService(ConversationRepository(db))
    await manager.connect(participant_id, websocket)
    bus = await get_bus()
    subscriber = None
    sub_task = None
    if bus.enabled:
        subscriber = await bus.subscribe(participant_channel(participant_id), websocket.send_text)
        sub_task = asyncio.create_task(subscriber.run())

    try:
        while True:
            data = await websocket.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_text(json.dumps({"type": "error", "detail": "Invalid JSON"}))
                continue
            try:
                frame = ChatFrame.model_validate(msg)
            except ValidationError:
                await websocket.send_text(json.dumps({"type": "error", "detail": "Invalid message payload"}))
                continue
            try:
                sent = await service.send_message(participant_id, frame.to or settings.ADMIN_ID, frame.content, frame.sender_name)
            except MessagingError as exc:
                await websocket.send_text(json.dumps({"type": "error", "detail": str(exc)}))
                continue
            await websocket.send_text(json.dumps({"type": "ack", "message": sent}))
    except WebSocketDisconnect:
        logger.info("Participant %s disconnected", participant_id)
    finally:
        manager.disconnect(participant_id, websocket)
        if subscriber is not None:
            await subscriber.cancel()
        if sub_task is not None:
            sub_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sub_task
