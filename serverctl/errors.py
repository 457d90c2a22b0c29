"""Exceptions raised by the supervisor."""

__all__ = ["PrerequisiteError", "LockError", "LockTimeout"]


class PrerequisiteError(RuntimeError):
    """A start precondition failed and the server cannot be launched.

    *hint* holds remediation text for the operator, if there is any.
    """

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class LockError(RuntimeError):
    """The control lock file could not be opened."""


class LockTimeout(LockError):
    """The control lock could not be acquired in time."""
