"""
Pytest configuration and fixtures.

Backend commands are answered by a ``ReplayTransport`` built from in-memory
payloads, so no running server is needed.
"""

import asyncio
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import pytest

from config import ClientConfig
from mm_client.gateway import CommandGateway
from mm_client.replay import ReplayTransport
from session.refresh import RefreshOrchestrator
from session.store import PageState, SessionStore

FIXTURES_DIR = Path(__file__).parent / "fixtures"


class GatedTransport(ReplayTransport):
    """Replay transport whose calls can be held until released."""

    def __init__(self, responses: Mapping[str, Any]) -> None:
        super().__init__(responses)
        self._gates: dict[str, list[asyncio.Event]] = {}

    def hold(self, command: str) -> asyncio.Event:
        """Block the next call of ``command`` until the returned event is set."""
        event = asyncio.Event()
        self._gates.setdefault(command, []).append(event)
        return event

    async def invoke(self, command: str, args: Mapping[str, Any] | None = None) -> Any:
        gates = self._gates.get(command)
        if gates:
            await gates.pop(0).wait()
        return await super().invoke(command, args)


# =============================================================================
# Payloads
# =============================================================================

ADMIN = {
    "user_id": "u1",
    "username": "admin",
    "email": "admin@example.com",
    "nickname": "",
    "first_name": "Ada",
    "last_name": "Min",
}

DIRECTORY = [
    {"id": "u1", "username": "admin", "roles": "system_user system_admin"},
    {"id": "u2", "username": "bob", "roles": "system_user"},
    {"id": "sys", "username": "system", "roles": "system_user"},
]

TEAMS = [{"id": "t1", "name": "core", "display_name": "Core"}]

TEAM_MEMBERS = [{"team_id": "t1", "user_id": "u1", "roles": "team_user"}]

CHANNELS = [
    {"id": "c1", "team_id": "t1", "name": "town-square", "display_name": "Town Square"},
    {"id": "c2", "team_id": "t1", "name": "off-topic", "display_name": "Off-Topic"},
]

SERVERS = [
    {"name": "localhost", "url": "http://localhost:8065/"},
    {"name": "ITA", "url": "https://mm.example.org/"},
]

UNREAD = {
    "order": ["r2", "r1"],
    "posts": {
        "r1": {"id": "r1", "channel_id": "c1", "user_id": "u1", "create_at": 100, "message": "hello"},
        "r2": {"id": "r2", "channel_id": "c1", "user_id": "sys", "create_at": 200,
               "type": "system_join_channel", "message": "bob joined"},
        "c1": {"id": "c1", "channel_id": "c1", "user_id": "u2", "root_id": "r1",
               "create_at": 150, "message": "hi"},
    },
    "has_next": False,
}


def ok(result: Any) -> dict[str, Any]:
    return {"result": result}


def fail(message: str, status_code: int = 500) -> dict[str, Any]:
    return {
        "error": {
            "id": "api.test.error",
            "message": message,
            "request_id": "req-1",
            "status_code": status_code,
        }
    }


def backend_responses(**overrides: Any) -> dict[str, Any]:
    """A fully working backend; keyword arguments replace single commands."""
    responses: dict[str, Any] = {
        "login": ok(ADMIN),
        "logout": ok(None),
        "my_teams": ok(TEAMS),
        "my_team_members": ok(TEAM_MEMBERS),
        "my_channels": ok(CHANNELS),
        "users": ok(DIRECTORY),
        "user_unread": ok(UNREAD),
        "channel_posts": ok(UNREAD),
        "post_threads": ok(UNREAD),
        "get_all_servers": ok(SERVERS),
        "get_current_server": ok(SERVERS[0]),
        "change_server": ok({"current": SERVERS[1], "list": SERVERS}),
        "add_server": ok({"name": "staging", "url": "https://staging.example.org/"}),
    }
    responses.update(overrides)
    return responses


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def make_session() -> Callable[..., tuple[RefreshOrchestrator, ReplayTransport]]:
    """Build an orchestrator over a replay transport and a fresh store."""

    def _make(
        responses: Mapping[str, Any] | None = None,
        state: PageState | None = None,
        config: ClientConfig | None = None,
        transport_cls: type[ReplayTransport] = ReplayTransport,
    ) -> tuple[RefreshOrchestrator, ReplayTransport]:
        transport = transport_cls(responses if responses is not None else backend_responses())
        orchestrator = RefreshOrchestrator(
            CommandGateway(transport), SessionStore(state), config
        )
        return orchestrator, transport

    return _make


@pytest.fixture
def fixture_path() -> Path:
    return FIXTURES_DIR / "session.yaml"
