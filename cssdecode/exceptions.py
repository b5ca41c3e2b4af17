"""cssdecode exception hierarchy.

All cssdecode exceptions inherit from CssDecodeError and support cause chaining.
"""

from __future__ import annotations

import enum
from typing import get_origin


class CssDecodeError(Exception):
    """Base exception for all cssdecode errors.

    Wraps original errors as __cause__ for proper exception chaining.
    """

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause


class Reason(enum.Enum):
    """Why a value could not be unmarshaled."""

    NON_POINTER = "non-pointer value"
    NIL_VALUE = "destination argument is nil"
    NIL_DOCUMENT = "resulting document was nil"
    CUSTOM_DECODER = "a custom Unmarshaler implementation threw an error"
    TYPE_CONVERSION = "a type conversion error occurred"
    ARRAY_LENGTH_MISMATCH = "array length does not match document elements found"
    MISSING_VALUE_SELECTOR = "at least one value selector must be passed to use as map key"
    MAP_KEY = "error unmarshaling map key"


def _describe(target: object) -> str:
    """Human-readable name for a destination type hint or instance."""
    if target is None:
        return "None"
    if isinstance(target, type):
        return target.__qualname__
    if get_origin(target) is not None:
        return repr(target).replace("typing.", "")
    return f"{type(target).__qualname__} instance"


class UnmarshalError(CssDecodeError):
    """Raised when a selection cannot be decoded into a destination.

    Errors nest: every record field, sequence index and map key wraps the
    error of its child, so walking ``__cause__`` recovers the full path from
    the root destination to the failing value.

    Attributes:
        reason: The ``Reason`` for the failure.
        target: The destination type hint (or instance) involved.
        value: The literal string that failed to convert, if any.
        field: Field name, sequence index or map key the failure occurred in.
    """

    def __init__(
        self,
        reason: Reason,
        target: object = None,
        *,
        value: str | None = None,
        field: object = None,
        cause: BaseException | None = None,
    ):
        self.reason = reason
        self.target = target
        self.value = value
        self.field = field
        super().__init__(self._format(cause), cause=cause)

    def _format(self, cause: BaseException | None) -> str:
        msg = f"{_describe(self.target)}: {self.reason.value}"
        if self.field is not None:
            msg += f" at {self.field!r}"
        if self.value is not None:
            msg += f" (value {self.value!r})"
        if cause is not None:
            msg += f": {cause}"
        return msg

    @property
    def path(self) -> tuple[object, ...]:
        """Field names / indices / map keys from the root to the failure."""
        path: list[object] = []
        err: BaseException | None = self
        while isinstance(err, UnmarshalError):
            if err.field is not None:
                path.append(err.field)
            err = err.__cause__
        return tuple(path)

    @property
    def root_cause(self) -> BaseException:
        """The innermost error in the cause chain."""
        err: BaseException = self
        while err.__cause__ is not None:
            err = err.__cause__
        return err
