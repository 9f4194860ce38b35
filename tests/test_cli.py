"""Tests for the command line interface."""

import sys

import pytest

from main import build_parser, main


class TestParser:
    """Test argument parsing."""

    def test_archive_defaults(self):
        """Test archive uses 30 days by default."""
        args = build_parser().parse_args(["archive"])

        assert args.command == "archive"
        assert args.days == 30

    def test_chat_requires_message(self):
        """Test chat without --message is an error."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["chat"])

    def test_command_required(self):
        """Test a subcommand must be given."""
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestMain:
    """Test commands end to end with the AI service disabled."""

    def setup_method(self):
        """Set up test fixtures."""
        self.argv = sys.argv

    def teardown_method(self):
        """Restore argv."""
        sys.argv = self.argv

    def test_archive(self, tmp_path, monkeypatch, capsys):
        """Test archive reports the number of archived conversations."""
        monkeypatch.setenv("AI_SERVICE_DISABLED", "true")
        sys.argv = ["formagent", "--db-path", str(tmp_path / "cli.db"), "archive", "--days", "7"]

        main()

        assert "Archived 0 conversations inactive for more than 7 days" in capsys.readouterr().out

    def test_chat(self, tmp_path, monkeypatch, capsys):
        """Test a one-shot chat prints the reply and conversation id."""
        monkeypatch.setenv("AI_SERVICE_DISABLED", "true")
        sys.argv = [
            "formagent", "--db-path", str(tmp_path / "cli.db"),
            "chat", "-m", "xin chào", "-c", "cli-1",
        ]

        main()

        out = capsys.readouterr().out
        assert "FormAgent AI" in out
        assert "conversation_id: cli-1" in out

    def test_check_config_fails_without_key(self, monkeypatch):
        """Test check-config exits non-zero on an invalid configuration."""
        monkeypatch.setenv("AI_PROVIDER", "openai")
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        sys.argv = ["formagent", "check-config"]

        with pytest.raises(SystemExit) as excinfo:
            main()

        assert excinfo.value.code == 1
