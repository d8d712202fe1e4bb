"""Tests for command parsing and routing."""

import io
from unittest.mock import ANY, patch

import pytest
from rich.console import Console

from watch_minion import router
from watch_minion.context import AppContext
from watch_minion.core.config import CloudConfig, Config
from watch_minion.domain.session.lifecycle import SessionController
from watch_minion.domain.sync.recovery import RecoveryOperations


@pytest.fixture
def ctx(gate, remote, store, engine, tmp_path):
    controller = SessionController(
        CloudConfig(url="https://demo.supabase.co", anon_key="anon"),
        gate,
        store,
        remote,
        session_path=tmp_path / "session.json",
    )
    return AppContext(
        config=Config(),
        store=store,
        gate=gate,
        engine=engine,
        recovery=RecoveryOperations(gate, remote, store, engine=engine),
        session=controller,
        console=Console(file=io.StringIO(), width=100),
    ).reload()


class TestParseCommand:
    def test_splits_command_and_arguments(self):
        assert router.parse_command("  Erase LOCAL ") == ("erase", ["LOCAL"])

    def test_empty_input(self):
        assert router.parse_command("   ") == ("", [])


class TestHandleCommand:
    def test_quit_stops_the_loop(self, ctx):
        _, should_continue = router.handle_command(ctx, "quit", [])
        assert not should_continue

    def test_connectivity_commands(self, ctx, gate):
        router.handle_command(ctx, "offline", [])
        assert not gate.online

        _, should_continue = router.handle_command(ctx, "online", [])
        assert gate.online
        assert should_continue

    def test_unknown_command(self, ctx, capsys):
        _, should_continue = router.handle_command(ctx, "rewind", [])

        assert should_continue
        assert "Unknown command: 'rewind'" in capsys.readouterr().out

    @patch("watch_minion.router.Confirm.ask")
    def test_bad_erase_scope_never_asks(self, mock_ask, ctx, capsys):
        router.handle_command(ctx, "erase", ["everything"])

        mock_ask.assert_not_called()
        assert "Unknown erase scope" in capsys.readouterr().out

    @patch("watch_minion.router.Confirm.ask")
    def test_declined_force_push_changes_nothing(
        self, mock_ask, ctx, remote, store, make_record
    ):
        store.save([make_record()])
        mock_ask.return_value = False

        router.handle_command(ctx, "force-push", [])

        assert remote.mutating_calls == []

    @patch("watch_minion.router.Confirm.ask")
    def test_force_pull_with_assume_yes(self, mock_ask, ctx, remote, make_record):
        remote.put(make_record(name="Cloud"))

        ctx, _ = router.handle_command(ctx, "force-pull", [], assume_yes=True)

        mock_ask.assert_not_called()
        assert [r.name for r in ctx.records] == ["Cloud"]

    @patch("watch_minion.domain.session.auth.sign_in_with_password")
    @patch("watch_minion.router.Prompt.ask")
    def test_login_prompts_for_password(self, mock_ask, mock_sign_in, ctx, session):
        mock_ask.return_value = "secret123"
        mock_sign_in.return_value = session

        router.handle_command(ctx, "login", ["viewer@example.com"])

        mock_sign_in.assert_called_once_with(ANY, "viewer@example.com", "secret123")
        assert mock_ask.call_args.kwargs == {"password": True}
