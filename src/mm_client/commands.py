"""Typed wrappers for each backend command."""

from __future__ import annotations

from mm_client.gateway import NOOP, CommandGateway, CommandResult, list_of, to
from models import (
    ChangeServerResult,
    Channel,
    PostThread,
    Server,
    Team,
    TeamMember,
    User,
)

DEFAULT_USERS_PER_PAGE = 100


async def get_current_server(gateway: CommandGateway) -> CommandResult[Server]:
    return await gateway.call("get_current_server", to(Server))


async def change_server(
    gateway: CommandGateway, server_name: str
) -> CommandResult[ChangeServerResult]:
    return await gateway.call(
        "change_server", to(ChangeServerResult), {"serverName": server_name}
    )


async def get_all_servers(gateway: CommandGateway) -> CommandResult[list[Server]]:
    return await gateway.call("get_all_servers", list_of(Server))


async def add_server(
    gateway: CommandGateway, name: str, url: str
) -> CommandResult[Server]:
    return await gateway.call("add_server", to(Server), {"name": name, "url": url})


async def login(
    gateway: CommandGateway, login_id: str, password: str
) -> CommandResult[User]:
    return await gateway.call(
        "login", to(User), {"login": login_id, "password": password}
    )


async def logout(gateway: CommandGateway) -> CommandResult[None]:
    return await gateway.call("logout", NOOP)


async def my_teams(gateway: CommandGateway) -> CommandResult[list[Team]]:
    return await gateway.call("my_teams", list_of(Team))


async def my_team_members(
    gateway: CommandGateway,
) -> CommandResult[list[TeamMember]]:
    return await gateway.call("my_team_members", list_of(TeamMember))


async def my_channels(gateway: CommandGateway) -> CommandResult[list[Channel]]:
    return await gateway.call("my_channels", list_of(Channel))


async def channel_posts(
    gateway: CommandGateway, channel_id: str
) -> CommandResult[PostThread]:
    return await gateway.call("channel_posts", to(PostThread), {"channel": channel_id})


async def post_thread(gateway: CommandGateway, post_id: str) -> CommandResult[PostThread]:
    """Fetch the thread a single post belongs to."""
    return await gateway.call("post_threads", to(PostThread), {"postId": post_id})


async def user_unread(
    gateway: CommandGateway, user_id: str, channel_id: str
) -> CommandResult[PostThread]:
    return await gateway.call(
        "user_unread",
        to(PostThread),
        {"channelId": channel_id, "userId": user_id},
    )


async def users(
    gateway: CommandGateway, page: int, per_page: int = DEFAULT_USERS_PER_PAGE
) -> CommandResult[list[User]]:
    return await gateway.call(
        "users", list_of(User), {"page": page, "perPage": per_page}
    )
