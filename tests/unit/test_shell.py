"""
Unit tests for shell command execution.
"""

import pytest

from norman.handlers import run_command, CommandExecutionError


class TestRunCommand:
    """Tests for run_command()."""

    def test_echo(self):
        """Test the trailing newline is stripped."""
        assert run_command("echo hello") == "hello"

    def test_multiline_output(self):
        """Test inner line breaks are kept."""
        assert run_command("printf 'a\\nb\\n'") == "a\nb"

    def test_only_one_newline_stripped(self):
        """Test exactly one trailing newline is removed."""
        assert run_command("printf 'a\\n\\n'") == "a\n"

    def test_empty_output(self):
        """Test a command that prints nothing."""
        assert run_command("true") == ""

    def test_shell_features(self):
        """Test the command runs through the shell."""
        assert run_command("echo one two | wc -w").strip() == "2"

    def test_invalid_utf8_output(self):
        """Test bytes that are not UTF-8 are replaced instead of raising."""
        assert run_command("printf '\\377\\376ok'") == "\ufffd\ufffdok"

    def test_invalid_utf8_stderr(self):
        """Test undecodable stderr still produces a CommandExecutionError."""
        with pytest.raises(CommandExecutionError) as exc_info:
            run_command("printf '\\377' >&2; exit 1")

        assert exc_info.value.stderr == "\ufffd"

    def test_non_zero_exit(self):
        """Test a failing command raises with its exit status."""
        with pytest.raises(CommandExecutionError) as exc_info:
            run_command("echo oops >&2; exit 3")

        assert exc_info.value.returncode == 3
        assert exc_info.value.stderr.strip() == "oops"
        assert str(exc_info.value) == "Command exited with status 3: echo oops >&2; exit 3"

    def test_unknown_command(self):
        """Test a missing program is reported as a failed command."""
        with pytest.raises(CommandExecutionError) as exc_info:
            run_command("definitely-not-a-real-command-xyz")

        assert exc_info.value.returncode == 127


class TestCommandExecutionError:
    """Tests for CommandExecutionError messages."""

    def test_never_started(self):
        """Test the message when the shell could not be launched."""
        error = CommandExecutionError("ls")

        assert error.returncode is None
        assert str(error) == "Command could not be run: ls"
