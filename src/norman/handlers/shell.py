"""
Local shell execution for SHELL requests.

No sandboxing and no timeout: the command runs with the server's own
privileges for as long as it takes.
"""

import logging
import subprocess


logger = logging.getLogger(__name__)


class CommandExecutionError(Exception):
    """
    Raised when a command cannot be launched or exits non-zero.

    Attributes:
        command: The command line that was run.
        returncode: Exit status, or None if the shell never started.
        stderr: Captured standard error, if any.
    """

    def __init__(self, command: str, returncode=None, stderr: str = ""):
        if returncode is None:
            message = f"Command could not be run: {command}"
        else:
            message = f"Command exited with status {returncode}: {command}"
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


def run_command(command: str) -> str:
    """
    Run `command` through the system shell and return its stdout.

    Output is decoded as UTF-8 with invalid bytes replaced, so binary
    output still comes back as text. Exactly one trailing newline is
    removed, so `echo hello` returns "hello" and multi-line output keeps
    its inner line breaks.

    Raises:
        CommandExecutionError: If the shell could not be started or the
                               command exited with a non-zero status.
    """
    logger.debug(f"Running command: {command!r}")

    try:
        result = subprocess.run(
            command,
            shell=True,
            capture_output=True,
        )
    except OSError as e:
        raise CommandExecutionError(command, stderr=str(e)) from e

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace")
        raise CommandExecutionError(command, result.returncode, stderr)

    output = result.stdout.decode("utf-8", errors="replace")
    if output.endswith("\n"):
        output = output[:-1]
    return output
