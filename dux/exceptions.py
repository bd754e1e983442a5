"""Custom exception hierarchy for dux."""


class DuxError(Exception):
    """Base for all dux errors."""


class CommandStartError(DuxError):
    """The supervised command could not be found or launched."""

    def __init__(self, command: str, reason: str):
        super().__init__(f"cannot start {command!r}: {reason}")
        self.command = command
        self.reason = reason


class ProcessStateError(DuxError):
    """Invalid process lifecycle transition."""
