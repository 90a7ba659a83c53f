from __future__ import annotations

from typing import Any, Dict, Mapping


class WtError(Exception):
    """Base exception for wt."""

    context: Dict[str, Any]

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        if context is not None:
            self.context = dict(context)
        else:
            self.context = {}

    def to_json_error(self) -> Dict[str, Any]:
        """Return a JSON-serializable error payload."""
        return {
            "message": str(self),
            "code": self.__class__.__name__,
            "context": self.context,
        }


class ValidationError(WtError, ValueError):
    """Raised when a registry or config document has the wrong shape."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        WtError.__init__(self, message, context=context)
        ValueError.__init__(self, message)


class NotFoundError(WtError, LookupError):
    """Raised when a referenced slot, path, or service does not exist."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        WtError.__init__(self, message, context=context)
        LookupError.__init__(self, message)


class ConflictError(WtError):
    """Raised when a slot is already taken or no free slot remains."""


class PatchError(WtError, ValueError):
    """Raised when a patch rule cannot be applied to an env file."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        WtError.__init__(self, message, context=context)
        ValueError.__init__(self, message)


class CommandError(WtError, RuntimeError):
    """Raised when an external git or post-setup command fails."""

    def __init__(
        self,
        message: str,
        *,
        command: str | None = None,
        returncode: int | None = None,
        stderr: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        if command:
            ctx["command"] = command
        if returncode is not None:
            ctx["returncode"] = returncode
        if stderr:
            ctx["stderr"] = stderr
        WtError.__init__(self, message, context=ctx)
        RuntimeError.__init__(self, message)


__all__ = [
    "WtError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "PatchError",
    "CommandError",
]
