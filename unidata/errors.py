"""
Error types for unidata.

Every failure raised by the dispatch core is a DataAccessError carrying an
ErrorKind. Kinds map onto HTTP-like status codes so that a transport binding
can translate them without inspecting messages.

Propagation:
    Errors raised by adapters or middlewares travel unchanged back through
    the middleware chain to the caller. The core never retries on its own.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    """Classification of data-access failures."""

    BAD_REQUEST = "bad_request"
    NOT_FOUND = "not_found"
    NO_ADAPTER = "no_adapter"
    NOT_IMPLEMENTED = "not_implemented"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    INTERNAL = "internal"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.NO_ADAPTER: 404,
    ErrorKind.NOT_IMPLEMENTED: 501,
    ErrorKind.INTERNAL: 500,
}


class DataAccessError(Exception):
    """Base exception for all data-access failures."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind | None = None,
        entity: str | None = None,
        source: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        if kind is not None:
            self.kind = kind
        self.entity = entity
        self.source = source
        self.details = details or {}

    @property
    def message(self) -> str:
        return self.args[0]

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    def __str__(self) -> str:
        parts = [f"[{self.kind.value}] {self.args[0]}"]
        if self.entity:
            target = self.entity if not self.source else f"{self.entity}:{self.source}"
            parts.append(f"(entity={target})")
        return " ".join(parts)


class BadRequestError(DataAccessError):
    """Raised when operation arguments are malformed or missing."""

    kind = ErrorKind.BAD_REQUEST


class NotFoundError(DataAccessError):
    """Raised when an update or lookup targets a record that does not exist."""

    kind = ErrorKind.NOT_FOUND


class NoAdapterError(DataAccessError):
    """Raised when no adapter is bound for an entity/source pair."""

    kind = ErrorKind.NO_ADAPTER


class NotImplementedOperationError(DataAccessError):
    """Raised when the resolved adapter does not support the operation."""

    kind = ErrorKind.NOT_IMPLEMENTED


class UnauthorizedError(DataAccessError):
    """Raised when an operation requires a user and none is present."""

    kind = ErrorKind.UNAUTHORIZED


class ForbiddenError(DataAccessError):
    """Raised when the current user lacks permission for an operation."""

    kind = ErrorKind.FORBIDDEN


class InternalError(DataAccessError):
    """Raised for unexpected failures inside adapters or transports."""

    kind = ErrorKind.INTERNAL


class ConfigurationError(Exception):
    """Raised at startup when plugins, middlewares or entity configs are invalid."""

    pass


_ERRORS_BY_STATUS: dict[int, type[DataAccessError]] = {
    400: BadRequestError,
    401: UnauthorizedError,
    403: ForbiddenError,
    404: NotFoundError,
    501: NotImplementedOperationError,
}


def error_for_status(status_code: int, message: str, **kwargs) -> DataAccessError:
    """
    Build the error matching an HTTP status code.

    Unknown codes become InternalError.
    """
    error_cls = _ERRORS_BY_STATUS.get(status_code, InternalError)
    return error_cls(message, **kwargs)
