from __future__ import annotations

import json
import tomllib

import pytest
from typer.testing import CliRunner

from fakes import PRIVATE_CHANNEL, FakeClient, search_result
from twist_cli import __version__
from twist_cli.cli import app, main
from twist_cli.client import SearchPage, TwistApiError
from twist_cli.config import update_config
from twist_cli.errors import PRIVATE_CHANNELS_ENV
from twist_cli.session import Session
from twist_cli.visibility import include_private_channels

runner = CliRunner()


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def invoke(client, tmp_path, monkeypatch):
    monkeypatch.setattr("sys.argv", ["tw"])
    config_path = tmp_path / "config.toml"

    def _invoke(*args: str, input: str | None = None):
        obj = {"session_factory": lambda: Session(client, config_path=config_path)}
        return runner.invoke(app, list(args), obj=obj, input=input)

    return _invoke


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_workspaces_json(invoke) -> None:
    result = invoke("workspaces", "--json")
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert [w["id"] for w in data] == [100, 200, 300]


def test_workspace_use_persists(invoke, tmp_path) -> None:
    result = invoke("workspace", "use", "personal")
    assert result.exit_code == 0, result.output
    assert "Switched to workspace: Personal" in result.output
    config = tomllib.loads((tmp_path / "config.toml").read_text(encoding="utf-8"))
    assert config["current_workspace"] == 300


def test_workspace_use_ambiguous(invoke) -> None:
    result = invoke("workspace", "use", "Ac")
    assert result.exit_code == 1
    assert "Multiple workspaces match" in result.output


def test_channels_hide_private_by_default(invoke) -> None:
    result = invoke("channels")
    assert result.exit_code == 0, result.output
    assert "general" in result.output
    assert "secret" not in result.output


def test_channels_include_private_flag(invoke) -> None:
    result = invoke("--include-private-channels", "channels")
    assert result.exit_code == 0, result.output
    assert "secret" in result.output
    assert "[private]" in result.output


def test_channels_include_private_env(invoke, monkeypatch) -> None:
    monkeypatch.setenv(PRIVATE_CHANNELS_ENV, "true")
    result = invoke("channels", "--json")
    assert result.exit_code == 0, result.output
    assert {c["name"] for c in json.loads(result.output)} == {"general", "secret"}


def test_workspace_arg_and_option_conflict(invoke) -> None:
    result = invoke("channels", "100", "--workspace", "200")
    assert result.exit_code == 1
    assert "Cannot specify workspace both" in result.output


def test_users_search(invoke) -> None:
    result = invoke("users", "--search", "grace", "--json")
    assert result.exit_code == 0, result.output
    assert [u["id"] for u in json.loads(result.output)] == [2, 3]


def test_user_json(invoke) -> None:
    result = invoke("user", "--json")
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["email"] == "ada@example.com"


def test_inbox_filters_private_threads(invoke) -> None:
    result = invoke("inbox", "--json")
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert [t["id"] for t in data] == [1]

    result = invoke("inbox", "--json", "--full")
    thread = json.loads(result.output)[0]
    assert thread["isUnread"] is True
    assert thread["channelName"] == "general"
    assert thread["url"] == "https://twist.com/a/100/ch/10/t/1"


def test_thread_view_public(invoke) -> None:
    result = invoke("thread", "view", "id:1", "--raw")
    assert result.exit_code == 0, result.output
    assert "Launch plan" in result.output
    assert "first" in result.output
    assert "Grace Hopper" in result.output


def test_thread_view_private_is_blocked(invoke) -> None:
    result = invoke("thread", "view", "https://twist.com/a/100/ch/20/t/2")
    assert result.exit_code == 1
    assert "private channel" in result.output


def test_thread_view_private_allowed_with_flag(invoke) -> None:
    result = invoke("--include-private-channels", "thread", "view", "2", "--raw")
    assert result.exit_code == 0, result.output
    assert "Salaries" in result.output


def test_thread_view_api_error_is_reported(invoke, client) -> None:
    async def _missing(thread_id: int):
        raise TwistApiError("Twist API error: Thread not found", status_code=404)

    client.get_thread = _missing
    result = invoke("thread", "view", "424242")
    assert result.exit_code == 1
    assert "error: Twist API error: Thread not found" in result.output
    assert not isinstance(result.exception, BaseExceptionGroup)


def test_thread_view_rejects_name(invoke) -> None:
    result = invoke("thread", "view", "Launch plan")
    assert result.exit_code == 1
    assert "Invalid thread reference: Launch plan" in result.output


def test_thread_view_unread(invoke) -> None:
    result = invoke("thread", "view", "1", "--unread", "--raw")
    assert result.exit_code == 0, result.output
    assert "UNREAD (1 new)" in result.output
    assert "second" in result.output


def test_thread_view_single_comment_json(invoke) -> None:
    result = invoke("thread", "view", "https://twist.com/a/100/ch/10/t/1/c/12", "--json")
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["id"] == 12
    assert data["url"] == "https://twist.com/a/100/ch/10/t/1/c/12"


def test_thread_reply_from_stdin(invoke, client) -> None:
    result = invoke("thread", "reply", "1", "--notify", "1,2", input="Ship it")
    assert result.exit_code == 0, result.output
    assert ("add_comment", (1, "Ship it", [1, 2])) in client.calls
    assert "https://twist.com/a/100/ch/10/t/1/c/99" in result.output


def test_thread_reply_private_is_blocked(invoke, client) -> None:
    result = invoke("thread", "reply", "2", "nope")
    assert result.exit_code == 1
    assert not [call for call in client.calls if call[0] == "add_comment"]


def test_thread_reply_dry_run(invoke, client) -> None:
    result = invoke("thread", "reply", "1", "draft", "--dry-run")
    assert result.exit_code == 0, result.output
    assert "would post comment to thread 1" in result.output
    assert not [call for call in client.calls if call[0] == "add_comment"]


def test_thread_done(invoke, client) -> None:
    result = invoke("thread", "done", "id:1")
    assert result.exit_code == 0, result.output
    assert ("archive_thread", 1) in client.calls


def test_msg_view_and_reply(invoke, client) -> None:
    result = invoke("msg", "view", "https://twist.com/a/100/msg/50", "--raw")
    assert result.exit_code == 0, result.output
    assert "Conversation with Ada, Grace Hopper" in result.output
    assert "hi there" in result.output

    result = invoke("msg", "reply", "50", "thanks")
    assert result.exit_code == 0, result.output
    assert ("add_conversation_message", (50, "thanks")) in client.calls
    assert "https://twist.com/a/100/msg/50/m/777" in result.output


def test_msg_unread_json(invoke) -> None:
    result = invoke("msg", "unread", "--json", "--full")
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data[0]["participantNames"] == ["Ada", "Grace Hopper"]


def test_search_drops_private_results(invoke, client) -> None:
    client.search_page = SearchPage(
        items=[
            search_result(type="thread", snippet="public", thread_id=1, channel_id=10),
            search_result(type="thread", snippet="private", thread_id=2, channel_id=PRIVATE_CHANNEL),
            search_result(type="message", snippet="dm", conversation_id=50),
        ],
        next_cursor="next",
        has_more=True,
    )
    result = invoke("search", "plan", "--json", "--author", "grace hopper")
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert [r["snippet"] for r in data["results"]] == ["public", "dm"]
    assert data["results"][1]["url"] == "https://twist.com/a/100/msg/50"
    assert data["nextCursor"] == "next"

    kwargs = next(call[1] for call in client.calls if call[0] == "search")
    assert kwargs["author_ids"] == [2]
    assert kwargs["query"] == "plan"


def test_search_only_private_results(invoke, client) -> None:
    client.search_page = SearchPage(
        items=[search_result(type="thread", snippet="x", thread_id=2, channel_id=PRIVATE_CHANNEL)],
        next_cursor="c2",
        has_more=True,
    )
    result = invoke("search", "x")
    assert result.exit_code == 0, result.output
    assert "No public results on this page." in result.output
    assert "--cursor c2" in result.output


def test_react_shortcode(invoke, client) -> None:
    result = invoke("react", "thread", "id:1", "+1")
    assert result.exit_code == 0, result.output
    assert ("add_reaction", ("thread", 1, "👍")) in client.calls

    result = invoke("unreact", "comment", "12", "tada", "--dry-run")
    assert result.exit_code == 0, result.output
    assert "would remove 🎉 from comment 12" in result.output
    assert not [call for call in client.calls if call[0] == "remove_reaction"]


def test_react_invalid_target(invoke) -> None:
    result = invoke("react", "channel", "1", "+1")
    assert result.exit_code != 0


def test_login_token(tmp_path) -> None:
    result = runner.invoke(app, ["login", "token", "secret-token"])
    assert result.exit_code == 0, result.output
    config = tomllib.loads((tmp_path / "config.toml").read_text(encoding="utf-8"))
    assert config["token"] == "secret-token"


def test_missing_token_reports_error(tmp_path) -> None:
    update_config(tmp_path / "config.toml", current_workspace=100)
    result = runner.invoke(app, ["channels"])
    assert result.exit_code == 1
    assert "No API token found" in result.output


def test_main_accepts_private_flag_anywhere(monkeypatch) -> None:
    seen: dict[str, object] = {}

    def _app(*, args, prog_name):
        seen["args"] = args
        seen["prog_name"] = prog_name

    monkeypatch.setattr("twist_cli.cli.app", _app)
    main(["thread", "view", "2", "--include-private-channels"])

    assert seen == {"args": ["thread", "view", "2"], "prog_name": "tw"}
    assert include_private_channels(argv=[]) is True
