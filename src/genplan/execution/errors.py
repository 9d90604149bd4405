"""User-facing error taxonomy and explicit success/failure results.

The invoker and the response interpreter return ``Success`` or ``Failure``
values instead of raising, so callers branch on ``ErrorKind`` rather than on
exception messages. ``GenerationError`` is raised only at the public entry
points (plan runs, polling, media helpers) where a caller expects either a
result or a typed error.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, Optional, Tuple, TypeVar, Union

T = TypeVar("T")


class ErrorKind(Enum):
    """Classification of generation failures shown to users."""

    # Quota / rate limit; the only kind retried automatically
    RATE_LIMITED = "rate_limited"

    # Bad or missing API key; the user must select a valid key
    INVALID_CREDENTIAL = "invalid_credential"

    # Service refused the prompt; carries the offending categories
    SAFETY_BLOCKED = "safety_blocked"

    # No candidate, or a candidate without text
    EMPTY_RESPONSE = "empty_response"

    # Output hit the token cap before the JSON document was complete
    TRUNCATED = "truncated"

    # Text could not be turned into JSON
    MALFORMED_OUTPUT = "malformed_output"

    # Polling cap reached before the asynchronous job finished
    TIMED_OUT = "timed_out"

    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self is ErrorKind.RATE_LIMITED


@dataclass(frozen=True)
class UserFacingError:
    """A classified error whose message is displayed verbatim to users."""

    kind: ErrorKind
    message: str
    context: Optional[str] = None
    categories: Tuple[str, ...] = ()
    cause: Optional[BaseException] = field(default=None, compare=False, repr=False)

    def __str__(self) -> str:
        return self.message


class GenerationError(Exception):
    """Raised at the public boundary when a generation task fails."""

    def __init__(self, error: UserFacingError):
        super().__init__(error.message)
        self.error = error

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind

    @classmethod
    def of(
        cls,
        kind: ErrorKind,
        message: str,
        context: Optional[str] = None,
        categories: Tuple[str, ...] = (),
    ) -> "GenerationError":
        return cls(UserFacingError(kind, message, context=context, categories=categories))


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Failure:
    error: UserFacingError

    @property
    def ok(self) -> bool:
        return False

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind

    def unwrap(self):
        raise GenerationError(self.error)


Result = Union[Success[T], Failure]


def fail(
    kind: ErrorKind,
    message: str,
    context: Optional[str] = None,
    categories: Tuple[str, ...] = (),
) -> Failure:
    """Shorthand for building a ``Failure``."""
    return Failure(UserFacingError(kind, message, context=context, categories=categories))
