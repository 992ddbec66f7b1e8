import pytest

from gymchat.exceptions import InvalidParticipant
from gymchat.services.conversation_id import derive, normalize_participant


def test_derive_matches_stored_key_format():
    assert derive("admin", "amy@x.com") == "admin_amy_x_com"


@pytest.mark.parametrize(
    "a,b",
    [
        ("amy@x.com", "admin"),
        ("bob.smith@gym.org", "amy@x.com"),
        ("Zed@x.com", "zed@x.com"),
        ("same@x.com", "same@x.com"),
    ],
)
def test_derive_is_symmetric_and_deterministic(a, b):
    first = derive(a, b)
    assert first == derive(b, a)
    assert first == derive(a, b)


def test_case_is_significant():
    assert derive("Amy@x.com", "admin") != derive("amy@x.com", "admin")


def test_normalize_strips_key_unsafe_characters():
    assert normalize_participant(" jo.ann@mail.example.com ") == "jo_ann_mail_example_com"


@pytest.mark.parametrize("bad", ["", "   ", None])
def test_empty_participant_is_rejected(bad):
    with pytest.raises(InvalidParticipant):
        derive(bad, "admin")
    with pytest.raises(InvalidParticipant):
        derive("admin", bad)


def test_invalid_participant_is_a_value_error():
    with pytest.raises(ValueError):
        derive("", "")
