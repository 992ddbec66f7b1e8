from typing import List, Optional

from pydantic import BaseModel


class SendMessageRequest(BaseModel):

    # defaults to the admin identity
    receiver_id: Optional[str] = None
    content: str
    sender_name: Optional[str] = None


class MessagePublic(BaseModel):

    content: str
    sender_id: str
    receiver_id: str
    timestamp: str
    read: bool = False
    sender_name: Optional[str] = None


class ConversationSummary(BaseModel):

    conversation_id: str
    other_participant: str
    last_message: Optional[str] = None
    last_message_timestamp: Optional[str] = None
    unread_count: int = 0


class ConversationList(BaseModel):

    items: List[ConversationSummary]


class ConversationHistory(BaseModel):

    conversation_id: str
    items: List[MessagePublic]


class UnreadTotal(BaseModel):

    unread: int


class ChatFrame(BaseModel):
    """A message sent over the chat websocket."""

    content: str
    # defaults to the admin identity
    to: Optional[str] = None
    sender_name: Optional[str] = None
