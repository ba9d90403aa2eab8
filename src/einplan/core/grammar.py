from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Tuple

from lark import Lark, Token, Transformer
from lark.exceptions import UnexpectedCharacters, UnexpectedInput, UnexpectedToken

from .exceptions import SubscriptSyntaxError

GRAMMAR_PATH = Path(__file__).with_name("subscript_grammar.lark")

ELLIPSIS = "..."
ARROW = "->"


@lru_cache(maxsize=1)
def _build_lark() -> Lark:
    return Lark(
        GRAMMAR_PATH.read_text(),
        parser="lalr",
        start="equation",
        maybe_placeholders=False,
    )


@dataclass(frozen=True)
class Term:
    """One comma-separated piece of a subscript string, as written."""

    atoms: Tuple[str, ...]
    columns: Tuple[int, ...]

    @property
    def labels(self) -> Tuple[str, ...]:
        return tuple(atom for atom in self.atoms if atom != ELLIPSIS)

    @property
    def ellipsis_count(self) -> int:
        return sum(1 for atom in self.atoms if atom == ELLIPSIS)

    @property
    def has_ellipsis(self) -> bool:
        return self.ellipsis_count > 0

    def ellipsis_columns(self) -> List[int]:
        return [col for atom, col in zip(self.atoms, self.columns) if atom == ELLIPSIS]

    def text(self) -> str:
        return "".join(self.atoms)


@dataclass(frozen=True)
class ParsedSubscripts:
    source: str
    inputs: Tuple[Term, ...]
    output: Optional[Term]

    @property
    def explicit_output(self) -> bool:
        return self.output is not None


class _SubscriptXform(Transformer):
    def term(self, items: List[Token]) -> Term:
        return Term(
            atoms=tuple(str(tok) for tok in items),
            columns=tuple(int(tok.column) for tok in items),
        )

    def inputs(self, items: List[Term]) -> Tuple[Term, ...]:
        return tuple(items)

    def output(self, items: List[Term]) -> Term:
        return items[0]

    def equation(self, items):
        inputs = items[0]
        output = items[1] if len(items) > 1 else None
        return inputs, output


def _error_column(exc: UnexpectedInput) -> Optional[int]:
    column = getattr(exc, "column", None)
    if isinstance(column, int) and column > 0:
        return column
    return None


def _error_operand(subscripts: str, exc: UnexpectedInput) -> Optional[int]:
    """Input term holding the error position, or ``None`` once past ``->``."""
    pos = getattr(exc, "pos_in_stream", None)
    if not isinstance(pos, int) or pos < 0:
        pos = len(subscripts)
    prefix = subscripts[:pos]
    if ARROW in prefix:
        return None
    return prefix.count(",")


def parse_subscripts(subscripts: str) -> ParsedSubscripts:
    """Tokenize ``subscripts`` into input terms and an optional output term.

    Only the syntax is checked here: characters outside the label alphabet,
    misplaced ``,``/``->`` and more than one ellipsis per term. Checks that
    need operand shapes live in :mod:`einplan.core.parser`.
    """
    if not isinstance(subscripts, str):
        raise TypeError(f"einsum subscripts must be a string, got {type(subscripts).__name__}")
    try:
        tree = _build_lark().parse(subscripts)
    except UnexpectedCharacters as exc:
        char = subscripts[exc.pos_in_stream] if exc.pos_in_stream < len(subscripts) else ""
        raise SubscriptSyntaxError(
            f"Invalid character {char!r} in einsum subscripts",
            subscripts=subscripts,
            column=_error_column(exc),
            operand=_error_operand(subscripts, exc),
        ) from None
    except UnexpectedToken as exc:
        found = exc.token.type if exc.token.type == "$END" else repr(str(exc.token))
        raise SubscriptSyntaxError(
            f"Unexpected {found} in einsum subscripts",
            subscripts=subscripts,
            column=_error_column(exc),
            operand=_error_operand(subscripts, exc),
        ) from None
    except UnexpectedInput as exc:  # pragma: no cover - other lark input errors
        raise SubscriptSyntaxError(
            "Malformed einsum subscripts",
            subscripts=subscripts,
            column=_error_column(exc),
        ) from None

    inputs, output = _SubscriptXform().transform(tree)

    for operand, term in enumerate(inputs):
        if term.ellipsis_count > 1:
            raise SubscriptSyntaxError(
                f"Input subscript '{term.text()}' contains more than one ellipsis",
                subscripts=subscripts,
                column=term.ellipsis_columns()[1],
                operand=operand,
            )
    if output is not None and output.ellipsis_count > 1:
        raise SubscriptSyntaxError(
            f"Output subscript '{output.text()}' contains more than one ellipsis",
            subscripts=subscripts,
            column=output.ellipsis_columns()[1],
        )
    return ParsedSubscripts(source=subscripts, inputs=inputs, output=output)
