import asyncio

import pytest

from trackdrop.pipeline.confirmation import (
    ConfirmationGate,
    ConfirmationResult,
    ConfirmationSession,
    SessionState,
    render_prompt,
)
from trackdrop.pipeline.models import Attachment, UploadRequest

from conftest import REQUESTER_ID, FakeChannel

OTHER_USER = "99"


async def _confirm(channel, timeout=2.0):
    gate = ConfirmationGate(channel, REQUESTER_ID, timeout=timeout)
    result = await gate.confirmation("chat", "Is all of your information correct?")
    return gate, result


@pytest.mark.unit
@pytest.mark.asyncio
async def test_affirm_press_confirms_and_retracts_prompt():
    channel = FakeChannel(presses=[(REQUESTER_ID, "yes")])
    gate, result = await _confirm(channel)

    assert result == ConfirmationResult.CONFIRMED
    assert gate.session.state == SessionState.CONFIRMED
    assert channel.deleted == [("chat", "prompt-1")]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_decline_press_declines():
    channel = FakeChannel(presses=[(REQUESTER_ID, "no")])
    _, result = await _confirm(channel)

    assert result == ConfirmationResult.DECLINED
    assert channel.deleted == [("chat", "prompt-1")]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_timeout_expires_and_still_retracts_prompt():
    channel = FakeChannel()
    gate, result = await _confirm(channel, timeout=0.05)

    assert result == ConfirmationResult.TIMED_OUT
    assert gate.session.state == SessionState.EXPIRED
    assert channel.deleted == [("chat", "prompt-1")]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_other_users_presses_are_ignored():
    channel = FakeChannel(presses=[(OTHER_USER, "yes"), (REQUESTER_ID, "no")])
    _, result = await _confirm(channel)

    assert result == ConfirmationResult.DECLINED


@pytest.mark.unit
@pytest.mark.asyncio
async def test_only_other_users_pressing_times_out():
    channel = FakeChannel(presses=[(OTHER_USER, "yes"), (OTHER_USER, "no")])
    _, result = await _confirm(channel, timeout=0.05)

    assert result == ConfirmationResult.TIMED_OUT


@pytest.mark.unit
@pytest.mark.asyncio
async def test_first_press_wins():
    channel = FakeChannel(
        presses=[(REQUESTER_ID, "yes"), (REQUESTER_ID, "no"), (REQUESTER_ID, "yes")]
    )
    gate, result = await _confirm(channel)
    # Let the remaining presses run against the finished gate
    await asyncio.sleep(0.01)

    assert result == ConfirmationResult.CONFIRMED
    assert gate.session.state == SessionState.CONFIRMED
    assert len(channel.deleted) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unknown_token_is_ignored():
    channel = FakeChannel(presses=[(REQUESTER_ID, "stale-token"), (REQUESTER_ID, "yes")])
    _, result = await _confirm(channel)

    assert result == ConfirmationResult.CONFIRMED


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failed_retraction_does_not_change_result():
    channel = FakeChannel(presses=[(REQUESTER_ID, "yes")])
    channel.delete_result = False
    _, result = await _confirm(channel)
    assert result == ConfirmationResult.CONFIRMED

    channel = FakeChannel(presses=[(REQUESTER_ID, "yes")])
    channel.delete_raises = True
    _, result = await _confirm(channel)
    assert result == ConfirmationResult.CONFIRMED


@pytest.mark.unit
@pytest.mark.asyncio
async def test_undelivered_prompt_declines_immediately():
    channel = FakeChannel()
    channel.prompt_fails = True
    _, result = await _confirm(channel, timeout=5.0)

    assert result == ConfirmationResult.DECLINED
    assert channel.deleted == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_handler_unsubscribed_after_resolution():
    channel = FakeChannel(presses=[(REQUESTER_ID, "yes")])
    await _confirm(channel)

    assert channel.event_handlers.get("interaction", []) == []


@pytest.mark.unit
def test_session_resolves_once():
    session = ConfirmationSession(requester_id="1")
    assert session.affirm_token != session.decline_token
    session.resolve(SessionState.CONFIRMED)
    with pytest.raises(RuntimeError):
        session.resolve(SessionState.DECLINED)


@pytest.mark.unit
def test_prompt_shows_placeholders_for_missing_fields():
    request = UploadRequest.create(
        "1",
        "Song",
        Attachment(url="u1", filename="a.mp3"),
        Attachment(url="u2", filename="c.png"),
    )
    text = render_prompt(request)

    assert "Title: Song" in text
    assert "Description: N/A" in text
    assert "Tags: N/A" in text
    assert text.endswith("Is all of your information correct?")
