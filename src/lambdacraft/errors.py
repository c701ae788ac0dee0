"""Structured error types separating signature checks from traversal failures."""

from __future__ import annotations

from dataclasses import dataclass


class LambdaCraftError(Exception):
    """Base class for structured lambdacraft errors."""


@dataclass(frozen=True)
class LambdaCraftSignatureError(LambdaCraftError, TypeError):
    """A callable's declared signature does not fit where it is used.

    Raised when a callable is created or handed to a combinator, before any
    element is visited.
    """

    message: str
    where: str = "callable"
    expected_arity: int | None = None
    found_arity: int | None = None

    def __str__(self) -> str:
        arity = ""
        if self.expected_arity is not None:
            arity = f"; expected {self.expected_arity} parameter(s)"
            if self.found_arity is not None:
                arity += f", found {self.found_arity}"
        return f"{self.where}: {self.message}{arity}"


class LambdaCraftRuntimeError(LambdaCraftError):
    """Generic failure raised while a callable or combinator is running."""


class LambdaCraftTypeError(LambdaCraftRuntimeError):
    """Argument or result does not match the callable's declared types."""


class LambdaCraftShapeError(LambdaCraftRuntimeError):
    """Length or destination-size mismatch for an array traversal."""


class LambdaCraftLifecycleError(LambdaCraftRuntimeError):
    """A callable or scope was used outside the lifetime of its creating scope."""


class LambdaCraftCycleError(LambdaCraftRuntimeError):
    """A chain traversal reached an element it had already visited."""


class LambdaCraftDepthError(LambdaCraftRuntimeError):
    """A chain traversal exceeded the configured length or recursion bound."""


class LambdaCraftUseAfterReleaseError(LambdaCraftRuntimeError):
    """A node was read, written or released after being released."""


def classify_runtime_exception(err: Exception, *, where: str | None = None) -> LambdaCraftRuntimeError:
    """Best-effort classification of foreign exceptions for structured APIs.

    ``where`` prefixes the message of a newly classified error.
    """
    if isinstance(err, LambdaCraftRuntimeError):
        return err
    message = str(err) or type(err).__name__
    text = f"{where}: {message}" if where else message

    if isinstance(err, RecursionError):
        return LambdaCraftDepthError(text)
    if isinstance(err, IndexError):
        return LambdaCraftShapeError(text)
    if isinstance(err, TypeError):
        return LambdaCraftTypeError(text)

    lowered = message.lower()
    depth_markers = ("recursion", "depth", "too long")
    if any(marker in lowered for marker in depth_markers):
        return LambdaCraftDepthError(text)

    shape_markers = ("shape", "length", "size", "out of range", "bounds")
    if any(marker in lowered for marker in shape_markers):
        return LambdaCraftShapeError(text)

    return LambdaCraftRuntimeError(text)
