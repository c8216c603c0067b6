"""
Operation Results.

Every public repository and orchestrator operation returns a
:class:`Result` instead of raising.  A failed result carries a
:class:`Failure` whose ``kind`` tells the caller whether retrying can help.
"""

from __future__ import annotations

from typing import Generic, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

from retailsync.models.enums import FailureKind

T = TypeVar("T")

ContextValue = Union[str, int, float, bool, None]

__all__ = ["ContextValue", "Failure", "Result"]

_NETWORK_MESSAGE: str = "Network error occurred. Please check your internet connection."


class Failure(BaseModel):
    """A classified error, safe to show to an operator.

    ``context`` carries structured location data (``entity``, ``part_no``,
    ``record_id``).  ``cause`` keeps the original exception for logging and
    is excluded from serialisation.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: FailureKind
    message: str
    code: Optional[str] = None
    context: dict[str, ContextValue] = Field(default_factory=dict)
    cause: Optional[BaseException] = Field(default=None, exclude=True, repr=False)

    @property
    def is_retryable(self) -> bool:
        """Only transport problems are worth an automatic retry."""
        return self.kind is FailureKind.NETWORK

    def with_context(self, **context: ContextValue) -> Failure:
        """Return a copy with *context* merged over the existing context."""
        return self.model_copy(update={"context": {**self.context, **context}})

    # -- Constructors ---------------------------------------------------------

    @classmethod
    def database(cls, error: BaseException, **context: ContextValue) -> Failure:
        return cls(
            kind=FailureKind.DATABASE,
            message=f"Local database error: {error}",
            code=type(error).__name__,
            context=context,
            cause=error,
        )

    @classmethod
    def network(
        cls,
        message: str = _NETWORK_MESSAGE,
        error: Optional[BaseException] = None,
        **context: ContextValue,
    ) -> Failure:
        return cls(
            kind=FailureKind.NETWORK, message=message, context=context, cause=error,
        )

    @classmethod
    def server(
        cls,
        message: str,
        code: Optional[str] = None,
        error: Optional[BaseException] = None,
        **context: ContextValue,
    ) -> Failure:
        return cls(
            kind=FailureKind.SERVER,
            message=message or "The server rejected the request.",
            code=code,
            context=context,
            cause=error,
        )

    @classmethod
    def unknown(
        cls,
        message: str,
        error: Optional[BaseException] = None,
        **context: ContextValue,
    ) -> Failure:
        return cls(
            kind=FailureKind.UNKNOWN, message=message, context=context, cause=error,
        )

    @classmethod
    def validation(cls, message: str, **context: ContextValue) -> Failure:
        return cls(kind=FailureKind.VALIDATION, message=message, context=context)


class Result(BaseModel, Generic[T]):
    """Tagged success/failure channel.

    Exactly one of ``data`` (possibly ``None`` for "nothing found") or
    ``failure`` is meaningful, selected by ``success``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    data: Optional[T] = None
    failure: Optional[Failure] = None

    @classmethod
    def ok(cls, data: Optional[T] = None) -> Result[T]:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, failure: Failure) -> Result[T]:
        return cls(success=False, failure=failure)

    @property
    def error(self) -> Optional[str]:
        """Failure message, or ``None`` on success."""
        return self.failure.message if self.failure is not None else None
