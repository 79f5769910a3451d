import argparse
import asyncio
import getpass
import logging

from config import configure_logging, get_project_root, load_client_config
from data.post_threads import reading_order
from mm_client.gateway import CommandGateway
from mm_client.replay import ReplayTransport
from session.refresh import RefreshOrchestrator
from session.store import PageState, SessionStore

logger = logging.getLogger(__name__)

# Constants - use absolute paths relative to project root
PROJECT_ROOT = get_project_root()
CONFIG_PATH = PROJECT_ROOT / "config" / "config.yaml"


def main() -> None:
    """Replay a backend session and print the resulting snapshot."""
    parser = argparse.ArgumentParser(
        description="mmdesk session core: replay a recorded backend session"
    )
    parser.add_argument("--fixture", help="YAML/JSON file of recorded command responses")
    parser.add_argument("--config", default=str(CONFIG_PATH), help="Config YAML path")
    parser.add_argument("--login", help="Log in with this login id before refreshing")
    parser.add_argument("--password", help="Password for --login (prompted if absent)")
    parser.add_argument("--server", help="Switch to this server before refreshing")
    parser.add_argument(
        "--threads",
        action="store_true",
        help="Print the active channel's threaded posts",
    )

    args = parser.parse_args()

    cfg = load_client_config(args.config)
    configure_logging(cfg.log_level)

    fixture = args.fixture or cfg.fixture
    if not fixture:
        parser.error("a fixture is required (--fixture or client.fixture in config)")

    password = args.password
    if args.login and password is None:
        password = getpass.getpass(f"Password for {args.login}: ")

    try:
        orchestrator = RefreshOrchestrator(
            CommandGateway(ReplayTransport.from_file(fixture)), SessionStore(), cfg
        )
        state = asyncio.run(
            run_session(orchestrator, args.server, args.login, password or "")
        )
    except Exception as e:
        logger.error(f"Session replay failed: {e}")
        raise

    show_session_overview(state)
    if args.threads:
        show_threads(state)


async def run_session(
    orchestrator: RefreshOrchestrator,
    server: str | None,
    login_id: str | None,
    password: str,
) -> PageState:
    if server:
        changed = await orchestrator.change_server(server)
        changed.fold(
            lambda e: logger.error(f"Could not switch to {server}: {e}"),
            lambda r: logger.info(f"Switched to {r.current.name}"),
        )

    if login_id:
        result = await orchestrator.login(login_id, password)
        result.fold(
            lambda e: logger.error(f"Login failed: {e}"),
            lambda user: logger.info(f"You are logged in as {user.username}"),
        )

    return await orchestrator.refresh(
        on_unauthenticated=lambda: logger.warning("Not logged in; login required")
    )


def show_session_overview(state: PageState) -> None:
    """Print a summary of the session snapshot."""
    print("\n" + "=" * 50)  # noqa: T201
    print("SESSION OVERVIEW")  # noqa: T201
    print("=" * 50)  # noqa: T201

    current = state.current_server
    print(f"Server: {current.name or '-'} ({current.url or 'none selected'})")  # noqa: T201
    print(f"Known servers: {', '.join(s.name for s in state.servers) or '-'}")  # noqa: T201
    user = state.user
    print(f"User: {user.username if user else 'logged out'}")  # noqa: T201
    print(f"Teams: {len(state.teams):,}")  # noqa: T201
    print(f"Team memberships: {len(state.team_members):,}")  # noqa: T201
    print(f"Channels: {len(state.channels):,}")  # noqa: T201
    print(f"Directory users: {len(state.users):,}")  # noqa: T201

    if state.current_channel:
        channel = state.current_channel
        print(f"Active channel: {channel.display_name or channel.name}")  # noqa: T201

    if state.errors:
        print(f"\nErrors during refresh ({len(state.errors)}):")  # noqa: T201
        for error in state.errors:
            print(f"  - {error}")  # noqa: T201

    print("\n" + "=" * 50)  # noqa: T201


def show_threads(state: PageState) -> None:
    """Print the active channel's posts grouped by thread, oldest first."""
    groups = reading_order(state.channel_posts)
    if not groups:
        print("No posts loaded.")  # noqa: T201
        return

    def author(user_id: str) -> str:
        user = state.users.get(user_id)
        return user.display_name if user else user_id

    for root, children in groups:
        marker = "[system] " if root.is_system else ""
        print(f"{marker}{author(root.user_id)}: {root.message}")  # noqa: T201
        for reply in children:
            print(f"    ↳ {author(reply.user_id)}: {reply.message}")  # noqa: T201


if __name__ == "__main__":
    main()
