"""Domain models shared by the command gateway, the threading engine and the
session store.

Backend payloads are validated into these records. They are frozen: a new
value is produced with ``model_copy`` instead of mutating an existing one.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Record(BaseModel):
    """Base for wire records: immutable, unknown keys ignored."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class Server(Record):
    """A reachable backend instance. ``url == ""`` means no server is selected."""

    name: str = Field("", description="Unique name within the server list")
    url: str = Field("", description="Base URL of the instance")

    @field_validator("url", mode="before")
    @classmethod
    def _url_as_text(cls, v: Any) -> str:
        return "" if v is None else str(v)


class ChangeServerResult(Record):
    current: Server
    servers: list[Server] = Field(default_factory=list, alias="list")


class User(Record):
    """Authenticated principal or a user-directory entry."""

    user_id: str = Field(..., validation_alias=AliasChoices("user_id", "id"))
    username: str = ""
    email: str = ""
    nickname: str = ""
    first_name: str = ""
    last_name: str = ""
    roles: str = Field("", description="Space separated role names")
    locale: str = ""

    @property
    def display_name(self) -> str:
        full = f"{self.first_name} {self.last_name}".strip()
        return self.nickname or full or self.username


class Team(Record):
    id: str
    name: str = ""
    display_name: str = ""
    type: str = ""
    description: str = ""


class TeamMember(Record):
    team_id: str
    user_id: str
    roles: str = ""
    delete_at: int = 0
    scheme_guest: bool = False
    scheme_user: bool = False
    scheme_admin: bool = False
    explicit_roles: str = ""


class Channel(Record):
    id: str
    team_id: str = ""
    type: str = ""
    display_name: str = ""
    name: str = ""
    header: str = ""
    purpose: str = ""
    creator_id: str = ""
    create_at: int = 0
    update_at: int = 0
    delete_at: int = 0
    last_post_at: int = 0
    last_root_post_at: int = 0
    total_msg_count: int = 0
    total_msg_count_root: int = 0


class Post(Record):
    """A single message. ``root_id == ""`` marks a thread root."""

    id: str
    channel_id: str = ""
    user_id: str = ""
    root_id: str = ""
    original_id: str = ""
    create_at: int = 0
    update_at: int = 0
    edit_at: int = 0
    delete_at: int = 0
    message: str = ""
    type: str = ""
    hashtags: str = ""
    file_ids: list[str] = Field(default_factory=list)
    pending_post_id: str = ""
    props: dict[str, Any] = Field(default_factory=dict)
    is_system: bool = False

    @field_validator("root_id", mode="before")
    @classmethod
    def _root_id_text(cls, v: Any) -> str:
        return v or ""

    @property
    def is_root(self) -> bool:
        return self.root_id == ""


class PostThread(Record):
    """A channel's fetched message window.

    ``order`` is the server-declared sequence of post ids, most recent first.
    It is the only authoritative sequencing: timestamps are not trusted for
    ordering.
    """

    order: list[str] = Field(default_factory=list)
    posts: dict[str, Post] = Field(default_factory=dict)
    next_post_id: str | None = None
    prev_post_id: str | None = None
    has_next: bool = False

    @field_validator("posts", mode="before")
    @classmethod
    def _index_posts(cls, v: Any) -> Any:
        # some endpoints deliver a list instead of an id-keyed map
        if isinstance(v, list):
            return {
                (p.id if isinstance(p, Post) else p.get("id")): p
                for p in v
                if isinstance(p, (Post, dict))
            }
        return v if v is not None else {}

    @field_validator("order", mode="before")
    @classmethod
    def _order_list(cls, v: Any) -> Any:
        return v if v is not None else []

    def missing_ids(self) -> list[str]:
        """Ids listed in ``order`` that have no entry in ``posts``."""
        return [pid for pid in self.order if pid not in self.posts]


class ApiError(Record):
    """A normalized backend failure. Only the command gateway builds these."""

    id: str = ""
    message: str
    request_id: str = ""
    status_code: int = 0

    def __str__(self) -> str:
        return self.message
