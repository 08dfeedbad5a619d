import pytest

from radio_relay.relay.state import (
    InvalidTransition,
    RelaySession,
    RelayState,
    UpstreamAttempt,
)


def test_new_session_starts_connecting_at_depth_zero():
    session = RelaySession("http://a.example/live")

    assert session.state is RelayState.CONNECTING
    assert session.attempt == UpstreamAttempt("http://a.example/live", 0)
    assert session.history == [RelayState.CONNECTING]


def test_follow_creates_new_attempt():
    first = UpstreamAttempt("http://a.example/live")
    second = first.follow("http://b.example/live")

    assert first.depth == 0
    assert second == UpstreamAttempt("http://b.example/live", 1)


def test_redirect_increments_depth():
    session = RelaySession("http://a.example/live")
    session.sent()
    session.redirected("http://b.example/live")
    session.sent()
    session.redirected("http://c.example/live")

    assert session.depth == 2
    assert session.attempt.url == "http://c.example/live"
    assert session.state is RelayState.CONNECTING


def test_streaming_then_closed():
    session = RelaySession("http://a.example/live")
    session.sent()
    session.streaming()
    session.close("source ended")

    assert session.closed
    assert session.close_reason == "source ended"


def test_close_is_idempotent():
    session = RelaySession("http://a.example/live")
    session.close("connection error")
    session.close("client disconnected")

    assert session.close_reason == "connection error"
    assert session.history == [RelayState.CONNECTING, RelayState.CLOSED]


@pytest.mark.parametrize(
    "steps",
    [
        ["streaming"],
        ["sent", "sent"],
        ["sent", "streaming", "sent"],
    ],
)
def test_invalid_transitions_rejected(steps):
    session = RelaySession("http://a.example/live")
    with pytest.raises(InvalidTransition):
        for step in steps:
            getattr(session, step)()


def test_streaming_cannot_redirect():
    session = RelaySession("http://a.example/live")
    session.sent()
    session.streaming()

    with pytest.raises(InvalidTransition):
        session.redirected("http://b.example/")
