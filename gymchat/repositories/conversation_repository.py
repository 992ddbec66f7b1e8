import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING
from pymongo.errors import PyMongoError

from gymchat.exceptions import StoreUnavailable
from gymchat.models.conversation import ConversationDocument
from gymchat.models.message import MessageDocument


logger = logging.getLogger(__name__)


class ConversationRepository:
    """One document per conversation, holding the ordered message list.

    Messages are only ever appended, so a message's position in ``messages``
    is a stable address for field-level updates.
    """

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["conversations"]

    async def ensure_indexes(self) -> None:
        try:
            await self.collection.create_index([("messages.sender_id", ASCENDING)])
            await self.collection.create_index([("messages.receiver_id", ASCENDING)])
        except PyMongoError as exc:
            raise StoreUnavailable("could not create conversation indexes") from exc

    async def get_conversation(self, conversation_id: str) -> Optional[ConversationDocument]:
        try:
            return await self.collection.find_one({"_id": conversation_id})
        except PyMongoError as exc:
            logger.error("Lookup of conversation %s failed: %s", conversation_id, exc)
            raise StoreUnavailable(f"could not load conversation {conversation_id}") from exc

    async def append_message(self, conversation_id: str, message: MessageDocument) -> None:
        now = datetime.now(timezone.utc)
        try:
            await self.collection.update_one(
                {"_id": conversation_id},
                {
                    "$push": {"messages": dict(message)},
                    "$inc": {"version": 1},
                    "$set": {"updated_at": now},
                    "$setOnInsert": {"created_at": now},
                },
                upsert=True,
            )
        except PyMongoError as exc:
            logger.error("Append to conversation %s failed: %s", conversation_id, exc)
            raise StoreUnavailable(f"could not append to conversation {conversation_id}") from exc

    async def mark_read(self, conversation_id: str, indexes: Iterable[int]) -> int:
        """Set ``read`` on the messages stored at ``indexes`` in one atomic update.

        Only the addressed fields are written, so messages appended meanwhile
        by the other participant are left alone.
        """
        fields = {f"messages.{i}.read": True for i in sorted(set(indexes))}
        if not fields:
            return 0
        try:
            result = await self.collection.update_one(
                {"_id": conversation_id},
                {
                    "$set": {**fields, "updated_at": datetime.now(timezone.utc)},
                    "$inc": {"version": 1},
                },
            )
        except PyMongoError as exc:
            logger.error("Marking conversation %s read failed: %s", conversation_id, exc)
            raise StoreUnavailable(f"could not update conversation {conversation_id}") from exc
        return len(fields) if result.matched_count else 0

    async def replace_messages(
        self,
        conversation_id: str,
        messages: List[MessageDocument],
        expected_version: int,
    ) -> bool:
        """Overwrite the whole message list if nobody wrote since ``expected_version``.

        Returns False when the stored version has moved on; the caller must
        re-read and retry. Prefer ``append_message`` and ``mark_read``.
        """
        try:
            result = await self.collection.update_one(
                {"_id": conversation_id, "version": expected_version},
                {
                    "$set": {
                        "messages": [dict(m) for m in messages],
                        "updated_at": datetime.now(timezone.utc),
                    },
                    "$inc": {"version": 1},
                },
            )
        except PyMongoError as exc:
            logger.error("Replacing messages of %s failed: %s", conversation_id, exc)
            raise StoreUnavailable(f"could not update conversation {conversation_id}") from exc
        return bool(result.matched_count)

    async def list_all_conversations(self) -> List[ConversationDocument]:
        try:
            return await self.collection.find({}).to_list(length=None)
        except PyMongoError as exc:
            logger.error("Conversation scan failed: %s", exc)
            raise StoreUnavailable("could not list conversations") from exc

    async def list_for_participant(self, participant_id: str) -> List[ConversationDocument]:
        query = {
            "$or": [
                {"messages.sender_id": participant_id},
                {"messages.receiver_id": participant_id},
            ]
        }
        try:
            return await self.collection.find(query).to_list(length=None)
        except PyMongoError as exc:
            logger.error("Conversation query for %s failed: %s", participant_id, exc)
            raise StoreUnavailable(f"could not list conversations for {participant_id}") from exc
