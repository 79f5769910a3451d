"""Session snapshot store.

Holds the single ``PageState`` value of a client session. Reads are
synchronous, writes replace the whole value through a pure function, and
every new value is pushed to subscribers in write order.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from data.post_threads import ThreadGroup, group_threads
from models import ApiError, Channel, PostThread, Server, Team, TeamMember, User
from result import Result

logger = logging.getLogger(__name__)

T = TypeVar("T")

Subscriber = Callable[["PageState"], None]

# Fields owned by a logged-in session; cleared on logout and server switch.
SESSION_FIELDS: tuple[str, ...] = (
    "user",
    "users",
    "teams",
    "team_members",
    "channels",
    "current_channel",
    "channel_posts",
    "errors",
)


class PageState(BaseModel):
    """Complete in-memory session state at a point in time."""

    model_config = ConfigDict(frozen=True)

    current_server: Server = Field(default_factory=Server)
    user: User | None = None
    users: dict[str, User] = Field(default_factory=dict)
    teams: list[Team] = Field(default_factory=list)
    team_members: list[TeamMember] = Field(default_factory=list)
    channels: list[Channel] = Field(default_factory=list)
    current_channel: Channel | None = None
    channel_posts: PostThread | None = None
    servers: list[Server] = Field(default_factory=list)
    errors: list[ApiError | str] = Field(default_factory=list)

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def merge(self, fields: Mapping[str, Any]) -> PageState:
        """New state with ``fields`` replaced and every other field kept."""
        unknown = set(fields) - set(type(self).model_fields)
        if unknown:
            raise KeyError(f"Unknown state field(s): {', '.join(sorted(unknown))}")
        return self.model_copy(update=dict(fields))


class SessionStore:
    """Shared container for the session ``PageState``."""

    def __init__(self, initial: PageState | None = None) -> None:
        self._value = initial if initial is not None else PageState()
        self._subscribers: list[Subscriber] = []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self) -> PageState:
        return self._value

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Deliver every subsequent value to ``callback``.

        Nothing is replayed: the current value is available from :meth:`get`.
        Returns a function that removes the subscription.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def thread_groups(self) -> list[ThreadGroup]:
        """Threaded view of the active channel's posts."""
        return group_threads(self._value.channel_posts)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def update(self, fn: Callable[[PageState], PageState]) -> PageState:
        """Replace the value with ``fn(current)``.

        The new value is computed before anything is assigned, so a failing
        ``fn`` leaves the store untouched.
        """
        new_value = fn(self._value)
        self._value = new_value
        self._publish(new_value)
        return new_value

    def merge(self, **fields: Any) -> PageState:
        return self.update(lambda state: state.merge(fields))

    def reset_session(self) -> PageState:
        """Clear the logged-in session, keeping the server list and selection."""
        defaults = PageState()
        return self.merge(**{name: getattr(defaults, name) for name in SESSION_FIELDS})

    def _publish(self, value: PageState) -> None:
        for callback in list(self._subscribers):
            try:
                callback(value)
            except Exception:
                logger.exception("State subscriber %r failed", callback)


def result_updater(
    store: SessionStore,
    result: Result[T, Any],
    apply: Callable[[PageState, T], Mapping[str, Any]],
) -> bool:
    """Merge the fields returned by ``apply`` when ``result`` is ``Ok``.

    On ``Err`` the error is logged and the store is left unmodified.
    Returns whether the store was updated.
    """

    def on_error(error: Any) -> bool:
        logger.error("Skipping state update: %s", error)
        return False

    def on_success(data: T) -> bool:
        store.update(lambda state: state.merge(apply(state, data)))
        return True

    return result.fold(on_error, on_success)
