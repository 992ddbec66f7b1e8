from datetime import datetime
from typing import List, TypedDict

from gymchat.models.message import MessageDocument


class ConversationDocument(TypedDict, total=False):
    # derived from the two participant ids, see services.conversation_id
    _id: str
    # append-only; positions never shift
    messages: List[MessageDocument]
    # bumped on every write, used for compare-and-swap
    version: int
    created_at: datetime
    updated_at: datetime
