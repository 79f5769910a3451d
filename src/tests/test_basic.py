"""Basic tests - imports, models and configuration."""

from pathlib import Path

import pytest
from pydantic import ValidationError


def test_core_imports() -> None:
    """Test that core modules can be imported without errors."""
    import config
    import session.refresh

    assert config is not None
    assert session.refresh.RefreshOrchestrator is not None


def test_console_script_target() -> None:
    """The ``mmdesk`` script entry point resolves from the installed modules."""
    from cli import main

    assert callable(main)


def test_user_accepts_login_and_directory_shapes() -> None:
    from models import User

    from_login = User.model_validate({"user_id": "u1", "username": "admin"})
    from_directory = User.model_validate({"id": "u1", "username": "admin"})

    assert from_login == from_directory
    assert from_login.display_name == "admin"
    assert User(user_id="u2", nickname="Bobby").display_name == "Bobby"


def test_post_thread_accepts_post_list() -> None:
    from models import PostThread

    thread = PostThread.model_validate(
        {
            "order": ["p2", "p1", "gone"],
            "posts": [{"id": "p1", "message": "a"}, {"id": "p2", "root_id": None}],
        }
    )
    assert set(thread.posts) == {"p1", "p2"}
    assert thread.posts["p2"].is_root
    assert thread.missing_ids() == ["gone"]


def test_change_server_result_alias() -> None:
    from models import ChangeServerResult

    result = ChangeServerResult.model_validate(
        {"current": {"name": "a", "url": "http://a/"}, "list": [{"name": "a"}]}
    )
    assert result.current.name == "a"
    assert [s.name for s in result.servers] == ["a"]


def test_models_are_frozen() -> None:
    from models import Server

    server = Server(name="localhost", url="http://localhost:8065/")
    with pytest.raises(ValidationError):
        server.name = "other"  # type: ignore[misc]


def test_api_error_str_is_message() -> None:
    from models import ApiError

    error = ApiError(id="x", message="Invalid session", status_code=401)
    assert str(error) == "Invalid session"


def test_project_root() -> None:
    """Test project root detection."""
    from config import get_project_root

    root = get_project_root()
    assert root.exists()
    assert root.is_dir()


def test_client_config_from_yaml(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    from config import load_client_config

    for name in ("MMDESK_LOG_LEVEL", "MMDESK_USERS_PER_PAGE", "MMDESK_FIXTURE"):
        monkeypatch.delenv(name, raising=False)
    config_file = tmp_path / "config.yaml"
    config_file.write_text("client:\n  users_per_page: 25\n  log_level: DEBUG\n")

    cfg = load_client_config(config_file)
    assert cfg.users_per_page == 25
    assert cfg.log_level == "DEBUG"
    assert cfg.users_max_pages == 10


def test_client_config_env_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    from config import load_client_config

    monkeypatch.setenv("MMDESK_USERS_PER_PAGE", "7")
    cfg = load_client_config(tmp_path / "missing.yaml")
    assert cfg.users_per_page == 7


def test_load_config_handles_bad_yaml(tmp_path: Path) -> None:
    from config import load_config

    bad = tmp_path / "bad.yaml"
    bad.write_text("client: [unclosed\n")
    assert load_config(bad) == {}
