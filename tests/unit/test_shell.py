"""Unit tests for the interactive shell."""

import os
from unittest.mock import Mock, patch

from prompt_toolkit.document import Document

from azsession.shell import SubscriptionCompleter, change_directory, start_repl

COMMANDS = ["login", "subscriptions", "use", "prompt"]


def completions(completer, text):
    return list(completer.get_completions(Document(text), None))


class TestSubscriptionCompleter:
    """Tests for command and subscription-name completion."""

    def test_completes_command_names(self, connected_session):
        completer = SubscriptionCompleter(connected_session, COMMANDS)

        result = completions(completer, "su")

        assert [c.text for c in result] == ["subscriptions"]
        assert result[0].start_position == -2

    def test_includes_builtins(self, connected_session):
        completer = SubscriptionCompleter(connected_session, COMMANDS)
        assert [c.text for c in completions(completer, "ex")] == ["exit"]

    def test_completes_cached_names_after_use(self, connected_session):
        completer = SubscriptionCompleter(connected_session, COMMANDS)

        result = completions(completer, "use P")

        assert [c.text for c in result] == ["Prod"]
        assert result[0].start_position == -1
        assert result[0].display_meta_text == "subscription"

    def test_names_with_spaces_are_quoted(
        self, connected_session, backend, subscription_factory
    ):
        backend.subscriptions.append(
            subscription_factory("Visual Studio", "55555555-5555-5555-5555-555555555555")
        )
        connected_session.get_available_subscriptions(refresh=True)
        completer = SubscriptionCompleter(connected_session, COMMANDS)

        result = completions(completer, "use Vis")

        assert [c.text for c in result] == ["'Visual Studio'"]
        assert result[0].start_position == -3

    def test_no_names_before_login(self, session):
        completer = SubscriptionCompleter(session, COMMANDS)
        assert completions(completer, "use ") == []

    def test_other_commands_get_no_argument_completion(self, connected_session):
        completer = SubscriptionCompleter(connected_session, COMMANDS)
        assert completions(completer, "login P") == []


class TestChangeDirectory:
    """Tests for the cd builtin."""

    def test_changes_directory(self, tmp_path, monkeypatch):
        monkeypatch.chdir("/")
        change_directory([str(tmp_path)])
        assert os.getcwd() == str(tmp_path)

    def test_missing_directory(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir("/")
        change_directory([str(tmp_path / "missing")])

        assert os.getcwd() == "/"
        assert "cd:" in capsys.readouterr().out


class TestStartRepl:
    """Tests for the read-eval-print loop."""

    @patch("azsession.shell.PromptSession")
    def test_dispatches_lines_until_exit(self, mock_prompt_cls, connected_session, tmp_path):
        mock_prompt_cls.return_value.prompt.side_effect = [
            "use 'Prod'",
            "",
            "help",
            "exit",
            "subscriptions",
        ]
        dispatch = Mock()

        start_repl(connected_session, dispatch, COMMANDS, history_file=tmp_path / "history")

        assert dispatch.call_args_list[0].args == (["use", "Prod"],)
        assert dispatch.call_args_list[1].args == (["--help"],)
        assert dispatch.call_count == 2

    @patch("azsession.shell.PromptSession")
    def test_prompt_reflects_active_subscription(
        self, mock_prompt_cls, connected_session, monkeypatch
    ):
        """Test the prompt message is re-derived from the session."""
        monkeypatch.chdir("/")
        mock_prompt_cls.return_value.prompt.side_effect = EOFError

        start_repl(connected_session, Mock(), COMMANDS, history_file=None)

        message = mock_prompt_cls.return_value.prompt.call_args.args[0]
        assert message() == "PS [Azure:\\Dev] /> "
        connected_session.select_active_subscription("Prod")
        assert message() == "PS [Azure:\\Prod] /> "

    @patch("azsession.shell.PromptSession")
    def test_interrupt_continues_and_eof_exits(self, mock_prompt_cls, session, capsys):
        mock_prompt_cls.return_value.prompt.side_effect = [KeyboardInterrupt, "prompt", EOFError]
        dispatch = Mock()

        start_repl(session, dispatch, COMMANDS, history_file=None)

        dispatch.assert_called_once_with(["prompt"])
        assert "Goodbye!" in capsys.readouterr().out

    @patch("azsession.shell.PromptSession")
    def test_parse_error_is_reported(self, mock_prompt_cls, session, capsys):
        mock_prompt_cls.return_value.prompt.side_effect = ["use 'Dev", "quit"]
        dispatch = Mock()

        start_repl(session, dispatch, COMMANDS, history_file=None)

        dispatch.assert_not_called()
        assert "Parse error" in capsys.readouterr().out

    @patch("azsession.shell.PromptSession")
    def test_cd_is_handled_in_shell(self, mock_prompt_cls, session, tmp_path, monkeypatch):
        monkeypatch.chdir("/")
        mock_prompt_cls.return_value.prompt.side_effect = [f"cd {tmp_path}", "exit"]
        dispatch = Mock()

        start_repl(session, dispatch, COMMANDS, history_file=None)

        dispatch.assert_not_called()
        assert os.getcwd() == str(tmp_path)
