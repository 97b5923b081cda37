"""lhc error types.

Error codes are stable strings; the CLI prints `message` and exits non-zero.
Collaborator failures are wrapped with operation context, the original
exception is kept as `__cause__`.
"""

from __future__ import annotations

from typing import Any


class LhcError(Exception):
    """Base error for all lhc exceptions."""

    code: str = "internal_error"
    message: str = "An internal error occurred"

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.__class__.message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(LhcError):
    """Volume or resource not found."""

    code = "not_found"
    message = "Resource not found"


class ListFailedError(LhcError):
    """Control-plane list call failed (not retried)."""

    code = "list_failed"
    message = "Failed to list resources"


class GetFailedError(LhcError):
    """Control-plane read failed for a reason other than not-found."""

    code = "get_failed"
    message = "Failed to read resource"


class ProvisionFailedError(LhcError):
    """Creation or readiness wait of an ephemeral object failed."""

    code = "provision_failed"
    message = "Failed to provision temporary resources"

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
        *,
        reason: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.reason = reason
        if reason is not None:
            self.details.setdefault("reason", reason)


class ExecFailedError(LhcError):
    """Remote command or its transport failed.

    Exit codes of the remote command are not distinguished from channel
    errors.
    """

    code = "exec_failed"
    message = "Remote command failed"


class StreamCopyFailedError(LhcError):
    """Producer or consumer side of a streaming copy failed."""

    code = "stream_copy_failed"
    message = "Stream copy failed"


class NoAccessPathError(LhcError):
    """Resolver exhausted every access strategy."""

    code = "no_access_path"
    message = "No access path to volume"


class ConfigError(LhcError):
    """Cluster credentials could not be loaded."""

    code = "config_error"
    message = "Failed to load cluster configuration"


class DeleteFailedError(LhcError):
    """Control-plane delete failed for a reason other than not-found."""

    code = "delete_failed"
    message = "Failed to delete resource"
