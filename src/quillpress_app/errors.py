#!filepath: src/quillpress_app/errors.py
from __future__ import annotations

import functools
import sqlite3
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar

from quillpress_app.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class ErrorKind(str, Enum):
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    VALIDATION_FAILED = "validation_failed"
    CONFLICT = "conflict"
    INFRASTRUCTURE = "infrastructure"


@dataclass(frozen=True, slots=True)
class ErrorDetails:
    kind: ErrorKind
    message: str = ""
    cause: Optional[BaseException] = None
    extra: Optional[dict[str, Any]] = None

    @property
    def reason(self) -> str:
        return str(self.kind.value)


class QuillpressError(Exception):
    kind: ErrorKind = ErrorKind.INFRASTRUCTURE

    def __init__(
        self,
        message: str = "",
        *,
        cause: Optional[BaseException] = None,
        extra: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message or self.kind.value)
        self._details = ErrorDetails(
            kind=self.kind, message=str(message or self.kind.value), cause=cause, extra=extra
        )

    @property
    def details(self) -> ErrorDetails:
        return self._details

    @property
    def reason(self) -> str:
        return self._details.reason


class Unauthorized(QuillpressError):
    kind = ErrorKind.UNAUTHORIZED


class NotFound(QuillpressError):
    kind = ErrorKind.NOT_FOUND


class ValidationFailed(QuillpressError):
    kind = ErrorKind.VALIDATION_FAILED


class Conflict(QuillpressError):
    kind = ErrorKind.CONFLICT


class InfrastructureError(QuillpressError):
    kind = ErrorKind.INFRASTRUCTURE


_ERRORS_BY_KIND: dict[ErrorKind, type[QuillpressError]] = {
    ErrorKind.UNAUTHORIZED: Unauthorized,
    ErrorKind.NOT_FOUND: NotFound,
    ErrorKind.VALIDATION_FAILED: ValidationFailed,
    ErrorKind.CONFLICT: Conflict,
    ErrorKind.INFRASTRUCTURE: InfrastructureError,
}


@dataclass(frozen=True, slots=True)
class Result(Generic[T]):
    """Outcome of a workflow operation.

    Exactly one of ``value`` or ``error`` is meaningful: ``error`` is None on
    success. Truthiness follows ``ok`` so callers can write ``if result:``.

    Attributes:
        value: Payload on success.
        error: Failure details.
    """

    value: Optional[T] = None
    error: Optional[ErrorDetails] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error is not None else None

    def __bool__(self) -> bool:
        return self.ok

    def unwrap(self) -> T:
        """Return the value or raise the typed error.

        Raises:
            QuillpressError: Subclass matching the failure kind.
        """
        if self.error is None:
            return self.value  # type: ignore[return-value]
        exc_type = _ERRORS_BY_KIND.get(self.error.kind, QuillpressError)
        raise exc_type(
            self.error.message, cause=self.error.cause, extra=self.error.extra
        ) from self.error.cause

    @classmethod
    def success(cls, value: Optional[T] = None) -> Result[T]:
        return cls(value=value, error=None)

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str = "",
        *,
        cause: Optional[BaseException] = None,
        extra: Optional[dict[str, Any]] = None,
    ) -> Result[T]:
        return cls(
            value=None,
            error=ErrorDetails(kind=kind, message=message, cause=cause, extra=extra),
        )

    @classmethod
    def from_error(cls, exc: QuillpressError) -> Result[T]:
        return cls(value=None, error=exc.details)


def returns_result(func: Callable[..., T]) -> Callable[..., Result[T]]:
    """Wrap a service method so it returns a Result instead of raising.

    Typed errors become failures of the same kind. Database errors are
    logged with their cause and become ``infrastructure`` failures.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Result[T]:
        op = func.__qualname__
        try:
            return Result.success(func(*args, **kwargs))
        except QuillpressError as e:
            if e.details.kind is ErrorKind.INFRASTRUCTURE:
                logger.error(f"{op} failed, err={e}")
            else:
                logger.debug(f"{op} refused, kind={e.reason}, msg={e}")
            return Result.from_error(e)
        except sqlite3.Error as e:
            logger.error(f"{op} database error, err={e}")
            return Result.failure(
                ErrorKind.INFRASTRUCTURE, f"database error in {op}", cause=e
            )

    return wrapper


def fails_closed(func: Callable[..., bool]) -> Callable[..., bool]:
    """Wrap a permission predicate so database errors log and deny."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> bool:
        try:
            return bool(func(*args, **kwargs))
        except sqlite3.Error as e:
            logger.error(f"{func.__qualname__} database error, denying, err={e}")
            return False

    return wrapper


__all__ = [
    "ErrorKind",
    "ErrorDetails",
    "QuillpressError",
    "Unauthorized",
    "NotFound",
    "ValidationFailed",
    "Conflict",
    "InfrastructureError",
    "Result",
    "returns_result",
    "fails_closed",
]
