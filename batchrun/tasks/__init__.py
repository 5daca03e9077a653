from .command import CommandFailed, CommandResult, CommandTaskFactory, require_env

__all__ = ["CommandFailed", "CommandResult", "CommandTaskFactory", "require_env"]
