from typing import Optional, TypedDict


class MessageDocument(TypedDict, total=False):
    content: str
    sender_id: str
    receiver_id: str
    # ISO-8601, UTC
    timestamp: str
    # flips false -> true once, when the receiver opens the conversation
    read: bool
    sender_name: Optional[str]
