import re

from gymchat.exceptions import InvalidParticipant


# characters that cannot appear in a conversation key
_UNSAFE = re.compile(r"[@.]")
SEPARATOR = "_"


def normalize_participant(participant_id: str) -> str:
    if participant_id is None:
        raise InvalidParticipant("participant id is required")
    normalized = _UNSAFE.sub("_", participant_id.strip())
    if not normalized:
        raise InvalidParticipant(f"invalid participant id {participant_id!r}")
    return normalized


def derive(participant_a: str, participant_b: str) -> str:
    """Return the conversation id shared by two participants.

    The result does not depend on argument order: ``derive(a, b) == derive(b, a)``.
    """
    first, second = sorted((normalize_participant(participant_a), normalize_participant(participant_b)))
    return f"{first}{SEPARATOR}{second}"
