from __future__ import annotations

from typing import Optional, Sequence


class EinsumError(Exception):
    """Base class for einplan-specific exceptions."""


class SubscriptSyntaxError(EinsumError, ValueError):
    def __init__(
        self,
        message: str,
        *,
        subscripts: str,
        column: Optional[int] = None,
        operand: Optional[int] = None,
    ):
        detail = _format_location(subscripts, column, operand)
        super().__init__(f"{message}{detail}")
        self.subscripts = subscripts
        self.column = column
        self.operand = operand


class RankMismatchError(EinsumError, ValueError):
    def __init__(
        self,
        message: str,
        *,
        subscripts: str,
        operand: int,
        expected: Optional[int] = None,
        actual: Optional[int] = None,
    ):
        super().__init__(f"{message} (operand {operand} in '{subscripts}')")
        self.subscripts = subscripts
        self.operand = operand
        self.expected = expected
        self.actual = actual


class UnknownOutputLabelError(EinsumError, ValueError):
    def __init__(self, label: str, *, subscripts: str):
        super().__init__(
            f"Output label '{label}' does not appear in any input of '{subscripts}'"
        )
        self.subscripts = subscripts
        self.label = label


class DuplicateOutputLabelError(EinsumError, ValueError):
    def __init__(self, label: str, *, subscripts: str):
        super().__init__(f"Output label '{label}' repeated in '{subscripts}'")
        self.subscripts = subscripts
        self.label = label


class ShapeError(EinsumError, ValueError):
    def __init__(
        self,
        message: str,
        *,
        subscripts: Optional[str] = None,
        label: Optional[str] = None,
        extents: Sequence[int] = (),
        operand: Optional[int] = None,
    ):
        context = []
        if label is not None:
            context.append(f"label '{label}'")
        if extents:
            context.append("extents " + " vs ".join(str(int(e)) for e in extents))
        if operand is not None:
            context.append(f"operand {operand}")
        if subscripts is not None:
            context.append(f"in '{subscripts}'")
        suffix = f" ({', '.join(context)})" if context else ""
        super().__init__(f"{message}{suffix}")
        self.subscripts = subscripts
        self.label = label
        self.extents = tuple(int(e) for e in extents)
        self.operand = operand


class BackendError(EinsumError, RuntimeError):
    pass


def _format_location(
    subscripts: str,
    column: Optional[int],
    operand: Optional[int],
) -> str:
    location = []
    if operand is not None:
        location.append(f"operand {operand}")
    if column is not None:
        location.append(f"col {column}")
    location_str = f" ({', '.join(location)})" if location else ""
    if column is None or column < 1:
        return f"{location_str}\n  {subscripts}" if subscripts else location_str
    caret = " " * (column - 1) + "^"
    return f"{location_str}\n  {subscripts}\n  {caret}"
