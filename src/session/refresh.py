"""Refresh orchestration for a client session.

Rebuilds the session snapshot after a trigger (app start, login, server
switch, channel selection) by running backend commands one after another and
merging each outcome into the :class:`SessionStore`.

Every step is best-effort: a failed command is logged and leaves its fields
untouched, and the sequence moves on. Later steps read fields merged by
earlier ones, so steps are awaited in order and never fanned out.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from config import ClientConfig
from data.post_threads import tag_system_posts
from mm_client import commands
from mm_client.gateway import CommandGateway, CommandResult, GatewayError
from models import ChangeServerResult, Channel, PostThread, Server, TeamMember, User
from result import Err, Ok, Result
from session.store import PageState, SessionStore, result_updater

logger = logging.getLogger(__name__)

T = TypeVar("T")

UnauthenticatedCallback = Callable[[], Any]


class Generation:
    """Monotonic token source; only the latest token is current."""

    def __init__(self) -> None:
        self._value = 0

    def next(self) -> int:
        self._value += 1
        return self._value

    def is_current(self, token: int) -> bool:
        return token == self._value


@dataclass
class RefreshRun:
    """Per-invocation bookkeeping of a refresh."""

    token: int
    user: User | None
    errors: list[GatewayError] = field(default_factory=list)
    completed: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RefreshStep:
    """One named fetch-and-merge step.

    ``requires`` names the steps whose merged fields this step reads; they
    must run earlier in the sequence.
    """

    name: str
    run: Callable[[RefreshOrchestrator, RefreshRun], Awaitable[None]]
    requires: tuple[str, ...] = ()
    authenticated: bool = True


def check_steps(steps: Sequence[RefreshStep]) -> None:
    """Raise ``ValueError`` if a step depends on one that may not run before it."""
    seen: dict[str, RefreshStep] = {}
    for step in steps:
        if step.name in seen:
            raise ValueError(f"Duplicate refresh step '{step.name}'")
        for dependency in step.requires:
            earlier = seen.get(dependency)
            if earlier is None:
                raise ValueError(
                    f"Refresh step '{step.name}' requires '{dependency}' to run first"
                )
            if earlier.authenticated and not step.authenticated:
                raise ValueError(
                    f"Refresh step '{step.name}' runs logged out but requires "
                    f"'{dependency}', which only runs logged in"
                )
        seen[step.name] = step


class RefreshOrchestrator:
    """Drives the command sequence that keeps a ``SessionStore`` current."""

    def __init__(
        self,
        gateway: CommandGateway,
        store: SessionStore,
        config: ClientConfig | None = None,
    ) -> None:
        self._gateway = gateway
        self._store = store
        self._config = config or ClientConfig()
        self._refresh_generation = Generation()
        self._thread_generation = Generation()
        self._background: set[asyncio.Future[Any]] = set()

    @property
    def store(self) -> SessionStore:
        return self._store

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------
    async def refresh(
        self, on_unauthenticated: UnauthenticatedCallback | None = None
    ) -> PageState:
        """Rebuild the snapshot and return the merged result.

        Without a logged-in user ``on_unauthenticated`` is fired (not awaited)
        and only the server steps run. Once a newer refresh or a session reset
        supersedes this one, it stops before its next step.
        """
        state = self._store.get()
        run = RefreshRun(token=self._refresh_generation.next(), user=state.user)
        logger.debug("Refresh #%d started (user=%s)", run.token, state.user)

        if state.user is None:
            self._fire_unauthenticated(on_unauthenticated)

        for step in self.STEPS:
            if not self._refresh_generation.is_current(run.token):
                logger.info(
                    "Refresh #%d superseded after %s", run.token, run.completed or "start"
                )
                break
            if step.authenticated and run.user is None:
                continue
            logger.debug("Refresh #%d: %s", run.token, step.name)
            await step.run(self, run)
            run.completed.append(step.name)

        if self._refresh_generation.is_current(run.token):
            self._store.merge(errors=list(run.errors))
        return self._store.get()

    def _apply(
        self,
        run: RefreshRun,
        step: str,
        result: Result[T, GatewayError],
        apply: Callable[[PageState, T], Mapping[str, Any]],
        thread_token: int | None = None,
    ) -> bool:
        stale = not self._refresh_generation.is_current(run.token) or (
            thread_token is not None
            and not self._thread_generation.is_current(thread_token)
        )
        if stale:
            logger.info("Discarding stale %s result of refresh #%d", step, run.token)
            return False
        if isinstance(result, Err):
            run.errors.append(result.error)
        return result_updater(self._store, result, apply)

    async def _step_teams(self, run: RefreshRun) -> None:
        result = await commands.my_teams(self._gateway)
        self._apply(run, "teams", result, lambda _s, teams: {"teams": teams})

    async def _step_team_members(self, run: RefreshRun) -> None:
        result = await commands.my_team_members(self._gateway)
        self._apply(
            run,
            "team members",
            result,
            lambda _s, members: {"team_members": _unique_members(members)},
        )

    async def _step_channels(self, run: RefreshRun) -> None:
        result = await commands.my_channels(self._gateway)
        self._apply(
            run,
            "channels",
            result,
            lambda _s, channels: {
                "channels": channels,
                "current_channel": channels[0] if channels else None,
            },
        )

    async def _step_users(self, run: RefreshRun) -> None:
        result = await self.fetch_user_directory()
        self._apply(run, "users", result, lambda _s, users: {"users": users})

    async def _step_unread(self, run: RefreshRun) -> None:
        channel = self._store.get().current_channel
        if channel is None or run.user is None:
            logger.debug("Refresh #%d: no channel selected", run.token)
            return
        thread_token = self._thread_generation.next()
        result = await commands.user_unread(self._gateway, run.user.user_id, channel.id)
        self._apply(run, "unread posts", result, _merge_thread, thread_token)

    async def _step_servers(self, run: RefreshRun) -> None:
        result = await commands.get_all_servers(self._gateway)
        self._apply(run, "servers", result, lambda _s, servers: {"servers": servers})

    async def _step_current_server(self, run: RefreshRun) -> None:
        result = await commands.get_current_server(self._gateway)
        self._apply(
            run,
            "current server",
            result,
            lambda _s, current: {"current_server": current},
        )

    STEPS: tuple[RefreshStep, ...] = (
        RefreshStep("teams", _step_teams),
        RefreshStep("team_members", _step_team_members),
        RefreshStep("channels", _step_channels),
        RefreshStep("users", _step_users),
        RefreshStep("unread", _step_unread, requires=("channels", "users")),
        RefreshStep("servers", _step_servers, authenticated=False),
        RefreshStep(
            "current_server",
            _step_current_server,
            requires=("servers",),
            authenticated=False,
        ),
    )

    def _fire_unauthenticated(self, callback: UnauthenticatedCallback | None) -> None:
        if callback is None:
            return
        try:
            outcome = callback()
        except Exception:
            logger.exception("Unauthenticated callback failed")
            return
        if inspect.isawaitable(outcome):
            task = asyncio.ensure_future(outcome)
            self._background.add(task)
            task.add_done_callback(self._background_done)

    def _background_done(self, task: asyncio.Future[Any]) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Unauthenticated callback failed: %s", task.exception())

    # ------------------------------------------------------------------
    # User directory
    # ------------------------------------------------------------------
    async def fetch_user_directory(self) -> Result[dict[str, User], GatewayError]:
        """Fetch directory pages until a short page, keyed by user id."""
        per_page = self._config.users_per_page
        directory: dict[str, User] = {}
        for page in range(self._config.users_max_pages):
            result = await commands.users(self._gateway, page, per_page)
            if isinstance(result, Err):
                return result
            directory.update({user.user_id: user for user in result.value})
            if len(result.value) < per_page:
                break
        else:
            logger.warning(
                "User directory truncated at %d pages of %d",
                self._config.users_max_pages,
                per_page,
            )
        return Ok(directory)

    async def update_users(self) -> Result[dict[str, User], GatewayError]:
        result = await self.fetch_user_directory()
        result_updater(self._store, result, lambda _s, users: {"users": users})
        return result

    # ------------------------------------------------------------------
    # Active thread
    # ------------------------------------------------------------------
    async def user_unread(
        self, user: User, channel: Channel
    ) -> CommandResult[PostThread]:
        """Load ``channel``'s unread window for ``user`` as the active thread."""
        thread_token = self._thread_generation.next()
        result = await commands.user_unread(self._gateway, user.user_id, channel.id)
        self._merge_active_thread(result, thread_token)
        return result

    async def load_channel_posts(self, channel: Channel) -> CommandResult[PostThread]:
        """Load ``channel``'s latest posts as the active thread."""
        thread_token = self._thread_generation.next()
        result = await commands.channel_posts(self._gateway, channel.id)
        self._merge_active_thread(result, thread_token)
        return result

    async def post_thread(self, post_id: str) -> CommandResult[PostThread]:
        """Fetch a single post's thread without touching the snapshot."""
        return await commands.post_thread(self._gateway, post_id)

    async def select_channel(self, channel: Channel) -> CommandResult[PostThread]:
        """Make ``channel`` active and load its unread window."""
        self._store.merge(current_channel=channel)
        user = self._store.get().user
        if user is None:
            logger.warning("Channel %s selected without a logged-in user", channel.id)
            return Err("Not logged in")
        return await self.user_unread(user, channel)

    def _merge_active_thread(
        self, result: CommandResult[PostThread], thread_token: int
    ) -> None:
        if not self._thread_generation.is_current(thread_token):
            logger.info("Discarding stale thread result #%d", thread_token)
            return
        result_updater(self._store, result, _merge_thread)

    # ------------------------------------------------------------------
    # Authentication and servers
    # ------------------------------------------------------------------
    async def login(self, login_id: str, password: str) -> CommandResult[User]:
        result = await commands.login(self._gateway, login_id, password)
        result_updater(self._store, result, lambda _s, user: {"user": user})
        return result

    async def logout(self) -> CommandResult[None]:
        result = await commands.logout(self._gateway)
        if isinstance(result, Ok):
            self._reset_session()
        return result

    async def change_server(
        self,
        server_name: str,
        on_unauthenticated: UnauthenticatedCallback | None = None,
    ) -> CommandResult[ChangeServerResult]:
        """Switch servers, drop the old session and refresh from the new one."""
        result = await commands.change_server(self._gateway, server_name)
        if isinstance(result, Err):
            return result

        logout = await commands.logout(self._gateway)
        if isinstance(logout, Err):
            logger.warning("Logout before server switch failed: %s", logout.error)
        self._reset_session()
        self._store.merge(
            current_server=result.value.current,
            servers=list(result.value.servers),
        )
        await self.refresh(on_unauthenticated)
        return result

    async def add_server(self, name: str, url: str) -> CommandResult[Server]:
        result = await commands.add_server(self._gateway, name, url)
        result_updater(self._store, result, _merge_added_server)
        return result

    def _reset_session(self) -> None:
        # in-flight completions belong to the previous session
        self._refresh_generation.next()
        self._thread_generation.next()
        self._store.reset_session()


def _merge_thread(state: PageState, thread: PostThread) -> dict[str, Any]:
    return {"channel_posts": tag_system_posts(thread, state.users)}


def _unique_members(members: list[TeamMember]) -> list[TeamMember]:
    seen: dict[tuple[str, str], TeamMember] = {}
    for member in members:
        seen.setdefault((member.team_id, member.user_id), member)
    return list(seen.values())


def _merge_added_server(state: PageState, server: Server) -> dict[str, Any]:
    servers = [s for s in state.servers if s.name != server.name]
    servers.append(server)
    return {"servers": servers, "current_server": server}


check_steps(RefreshOrchestrator.STEPS)
