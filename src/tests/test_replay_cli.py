"""Tests for the replay transport and the CLI session runner."""

from pathlib import Path

import pytest

from cli import run_session, show_session_overview, show_threads
from mm_client.gateway import CommandGateway, TransportRejected
from mm_client.replay import ReplayTransport
from models import ApiError
from session.refresh import RefreshOrchestrator
from session.store import PageState, SessionStore


def test_invalid_fixture_entry() -> None:
    with pytest.raises(ValueError, match="needs a 'result' or 'error'"):
        ReplayTransport({"login": {"user": "admin"}})
    with pytest.raises(ValueError, match="no entries"):
        ReplayTransport({"login": []})


@pytest.mark.asyncio
async def test_entries_are_consumed_in_order_and_last_repeats() -> None:
    transport = ReplayTransport({"users": [{"result": [1]}, {"error": "down"}, {"result": []}]})

    assert await transport.invoke("users") == [1]
    with pytest.raises(TransportRejected):
        await transport.invoke("users")
    assert await transport.invoke("users") == []
    assert await transport.invoke("users") == []
    assert transport.commands_called() == ["users"] * 4


@pytest.mark.asyncio
async def test_fixture_session(fixture_path: Path) -> None:
    orchestrator = RefreshOrchestrator(
        CommandGateway(ReplayTransport.from_file(fixture_path)), SessionStore()
    )

    state = await run_session(orchestrator, None, "admin", "admin123!")

    assert state.user is not None and state.user.user_id == "u1"
    assert [t.name for t in state.teams] == ["core"]
    assert state.channels == []
    assert set(state.users) == {"u1", "u2"}
    [error] = state.errors
    assert isinstance(error, ApiError)
    assert error.status_code == 401


@pytest.mark.asyncio
async def test_fixture_session_with_server_switch(fixture_path: Path) -> None:
    orchestrator = RefreshOrchestrator(
        CommandGateway(ReplayTransport.from_file(fixture_path)), SessionStore()
    )

    state = await run_session(orchestrator, "ITA", None, "")

    assert state.user is None
    assert [s.name for s in state.servers] == ["localhost", "ITA"]


def test_show_session_overview(capsys: pytest.CaptureFixture[str]) -> None:
    state = PageState(errors=["No mattermost server is selected"])

    show_session_overview(state)

    out = capsys.readouterr().out
    assert "SESSION OVERVIEW" in out
    assert "User: logged out" in out
    assert "No mattermost server is selected" in out


def test_show_threads(capsys: pytest.CaptureFixture[str]) -> None:
    state = PageState.model_validate(
        {
            "users": {"u1": {"id": "u1", "username": "admin", "nickname": "Ada"}},
            "channel_posts": {
                "order": ["r2", "r1"],
                "posts": {
                    "r1": {"id": "r1", "user_id": "u1", "message": "first"},
                    "r2": {"id": "r2", "user_id": "u9", "message": "second"},
                    "c1": {"id": "c1", "user_id": "u1", "root_id": "r1", "message": "reply"},
                },
            },
        }
    )

    show_threads(state)

    lines = capsys.readouterr().out.splitlines()
    assert lines == ["Ada: first", "    ↳ Ada: reply", "u9: second"]


def test_show_threads_empty(capsys: pytest.CaptureFixture[str]) -> None:
    show_threads(PageState())
    assert "No posts loaded." in capsys.readouterr().out
