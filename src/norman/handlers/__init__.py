"""
Work performed on behalf of a request.

Every service currently runs through the local shell; DOCKER and AWS
requests are executed exactly like SHELL ones.
"""

from .shell import run_command, CommandExecutionError

__all__ = ["run_command", "CommandExecutionError"]
