"""Error taxonomy shared by the sync, snapshot and resolve layers."""

from enum import Enum


class SyncErrorKind(str, Enum):
    UNREACHABLE = "Unreachable"  # No network / no response
    HTTP_ERROR = "HttpError"  # Non-2xx response
    MALFORMED_DELTA = "MalformedDelta"  # Structurally invalid merge target
    PARSE_ERROR = "ParseError"  # Snapshot missing a key or non-numeric value
    UNKNOWN = "Unknown"  # Resolver given an empty/absent state


class SyncError(Exception):
    """Base class. `kind` names the taxonomy entry."""

    kind: SyncErrorKind = SyncErrorKind.UNKNOWN


class UnreachableError(SyncError, ConnectionError):
    """Remote process did not answer (connection refused, timeout, DNS...)."""

    kind = SyncErrorKind.UNREACHABLE


class HttpStatusError(SyncError):
    """Remote process answered with a non-2xx status."""

    kind = SyncErrorKind.HTTP_ERROR

    def __init__(self, status_code: int, message: str = "") -> None:
        super().__init__(f"HTTP {status_code}: {message}" if message else f"HTTP {status_code}")
        self.status_code = status_code


class MalformedDeltaError(SyncError):
    """Status response lacks the substructures needed to merge it."""

    kind = SyncErrorKind.MALFORMED_DELTA


class ParseError(SyncError):
    """Snapshot or object-info text could not be turned into a SkyState."""

    kind = SyncErrorKind.PARSE_ERROR


class MissingFieldError(ParseError):
    """A required key is absent."""

    def __init__(self, field: str) -> None:
        super().__init__(f"missing required field: {field}")
        self.field = field


class UnknownStateError(SyncError):
    kind = SyncErrorKind.UNKNOWN
