import json
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from gymchat.exceptions import EmptyContent, InvalidParticipant
from gymchat.models.message import MessageDocument
from gymchat.repositories.conversation_repository import ConversationRepository
from gymchat.services.conversation_id import derive
from gymchat.utils.realtime_bus import deliver


logger = logging.getLogger(__name__)

Publisher = Callable[[str, str], Awaitable[None]]


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Best-effort conversion of a stored timestamp; None when unusable."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_participant(participant_id: str) -> str:
    if not participant_id or not participant_id.strip():
        raise InvalidParticipant("participant id cannot be empty")
    return participant_id


class ChatService:
    """Conversation listing, opening (read reconciliation) and sending."""

    def __init__(
        self,
        conversation_repo: ConversationRepository,
        publisher: Optional[Publisher] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._conversation_repo = conversation_repo
        self._publisher = publisher or deliver
        self._clock = clock

    async def send_message(
        self,
        sender_id: str,
        receiver_id: str,
        content: str,
        sender_name: Optional[str] = None,
    ) -> MessageDocument:
        if not content or not content.strip():
            raise EmptyContent("Message content cannot be empty")
        _require_participant(sender_id)
        _require_participant(receiver_id)
        conversation_id = derive(sender_id, receiver_id)
        message: MessageDocument = {
            "content": content,
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "timestamp": self._clock().isoformat(),
            "read": False,
        }
        if sender_name:
            message["sender_name"] = sender_name
        await self._conversation_repo.append_message(conversation_id, message)
        logger.info("Message from %s to %s stored in %s", sender_id, receiver_id, conversation_id)

        payload = json.dumps({"type": "message", "conversation_id": conversation_id, "message": message})
        await self._publisher(receiver_id, payload)
        return message

    async def open_conversation(self, viewer_id: str, other_id: str) -> List[MessageDocument]:
        """Return the history in chronological order and mark the viewer's unread messages read.

        The returned messages reflect the state before marking. A conversation
        with no record yet yields an empty list.
        """
        conversation_id = derive(viewer_id, other_id)
        record = await self._conversation_repo.get_conversation(conversation_id)
        if record is None:
            return []
        # different pairs can normalize to the same id ("a_b"/"c" and "a"/"b_c"),
        # so keep only messages exchanged between these two participants
        pair = {(viewer_id, other_id), (other_id, viewer_id)}
        stored = [
            (index, msg)
            for index, msg in enumerate(record.get("messages") or [])
            if (msg.get("sender_id"), msg.get("receiver_id")) in pair
        ]

        unread = [
            index
            for index, msg in stored
            if msg.get("receiver_id") == viewer_id and not msg.get("read", False)
        ]
        if unread:
            await self._conversation_repo.mark_read(conversation_id, unread)
            logger.info("Marked %d message(s) read for %s in %s", len(unread), viewer_id, conversation_id)

        return sort_chronologically([msg for _, msg in stored])

    async def list_conversations(self, viewer_id: str, search: Optional[str] = None) -> List[Dict[str, Any]]:
        _require_participant(viewer_id)
        records = await self._conversation_repo.list_for_participant(viewer_id)

        groups: Dict[str, Dict[str, Any]] = {}
        for record in records:
            messages: List[MessageDocument] = record.get("messages") or []
            other = _other_participant(viewer_id, messages)
            if other is None:
                continue
            group = groups.setdefault(other, {"conversation_id": record["_id"], "messages": []})
            group["messages"].extend(messages)

        term = search.strip().lower() if search else ""
        dated, undated = [], []
        for other, group in groups.items():
            if term and term not in other.lower():
                continue
            summary, last_ts = summarize(viewer_id, other, group["conversation_id"], group["messages"])
            if last_ts is None:
                undated.append(summary)
            else:
                dated.append((last_ts, summary))

        # newest first; conversations without a usable timestamp go last
        dated.sort(key=lambda item: item[0], reverse=True)
        return [summary for _, summary in dated] + undated

    async def unread_total(self, viewer_id: str) -> int:
        """Unread messages addressed to ``viewer_id`` across all conversations.

        Recomputed from the store on every call so the badge never drifts.
        """
        _require_participant(viewer_id)
        records = await self._conversation_repo.list_for_participant(viewer_id)
        return sum(_count_unread(viewer_id, record.get("messages") or []) for record in records)


def sort_chronologically(messages: List[MessageDocument]) -> List[MessageDocument]:
    # stable: equal timestamps keep stored order, unparseable ones go last
    def key(msg: MessageDocument):
        ts = parse_timestamp(msg.get("timestamp"))
        return (ts is None, ts or datetime.min.replace(tzinfo=timezone.utc))

    return sorted(messages, key=key)


def summarize(
    viewer_id: str,
    other_id: str,
    conversation_id: str,
    messages: List[MessageDocument],
) -> Tuple[Dict[str, Any], Optional[datetime]]:
    last: Optional[MessageDocument] = None
    last_ts: Optional[datetime] = None
    for msg in messages:
        ts = parse_timestamp(msg.get("timestamp"))
        # ">=" so the later stored message wins a tie
        if ts is not None and (last_ts is None or ts >= last_ts):
            last, last_ts = msg, ts

    summary = {
        "conversation_id": conversation_id,
        "other_participant": other_id,
        "last_message": last.get("content") if last else None,
        "last_message_timestamp": last.get("timestamp") if last else None,
        "unread_count": _count_unread(viewer_id, messages),
    }
    return summary, last_ts


def _other_participant(viewer_id: str, messages: List[MessageDocument]) -> Optional[str]:
    for msg in messages:
        if msg.get("sender_id") == viewer_id and msg.get("receiver_id"):
            return msg["receiver_id"]
    for msg in messages:
        if msg.get("receiver_id") == viewer_id and msg.get("sender_id"):
            return msg["sender_id"]
    return None


def _count_unread(viewer_id: str, messages: List[MessageDocument]) -> int:
    return sum(1 for msg in messages if msg.get("receiver_id") == viewer_id and not msg.get("read", False))
