"""
Error taxonomy shared by storage backends and the club service.
Each error carries a stable code so callers can map it to a transport status.
"""
from __future__ import annotations


class WatchClubError(Exception):
    """Base for all domain errors."""
    code = "unknown"


class InvalidArgument(WatchClubError, ValueError):
    """Missing or malformed required field."""
    code = "invalid_argument"


class NotFound(WatchClubError, LookupError):
    """Referenced id (or email) is absent."""
    code = "not_found"


class AlreadyExists(WatchClubError):
    """Id or unique-field collision."""
    code = "already_exists"


class FailedPrecondition(WatchClubError):
    """Valid request, wrong entity state (e.g. club already started)."""
    code = "failed_precondition"


class PermissionDenied(WatchClubError):
    """Actor does not own the resource being mutated."""
    code = "permission_denied"


class Internal(WatchClubError):
    """Backend failure not attributable to caller input."""
    code = "internal"


class Cancelled(WatchClubError):
    """The caller's cancel event was set before the operation could finish."""
    code = "cancelled"


class ConfigurationError(WatchClubError, ValueError):
    """Bad startup configuration (e.g. unsupported storage URI)."""
    code = "configuration"
