"""Lark-based tokenizer for cell formula bodies.

Recognizes:
- Numbers: ``3``, ``42``, ``2.5`` (digits with an optional fractional part)
- Names: a letter followed by letters/digits (``A1``, ``AA10``, ``rate``)
- Operators ``+ - * /`` and parentheses

Whitespace is skipped.  Anything else is an ``UnrecognizedTokenError``.
Only the lexer half of Lark is used; ordering and tree building are done
by the shunting-yard converter and the expression builder.
"""

from __future__ import annotations

import re
from collections.abc import Iterator

from lark import Lark, Token
from lark.exceptions import UnexpectedCharacters

from sheetcore.formulas.errors import UnrecognizedTokenError

NUMBER = "NUMBER"
NAME = "NAME"
OPERATOR = "OPERATOR"
LPAR = "LPAR"
RPAR = "RPAR"

GRAMMAR = r"""
start: _token*

_token: NUMBER | NAME | OPERATOR | LPAR | RPAR

NUMBER: /\d+(\.\d+)?/
NAME: /[A-Za-z][A-Za-z0-9]*/
OPERATOR: /[+\-*\/]/
LPAR: "("
RPAR: ")"

%import common.WS
%ignore WS
"""

_lexer = Lark(GRAMMAR, parser="lalr", lexer="basic", start="start")

# Characters that can begin a token, or be skipped.
_TOKEN_START_RE = re.compile(r"[0-9A-Za-z+\-*/()\s]")

# Cell reference shape: column letters followed by a row number.
_CELL_REF_RE = re.compile(r"^[A-Za-z]+[0-9]+$")


def _offending_run(text: str, pos: int) -> str:
    """Return the run of unrecognizable characters starting at *pos*."""
    end = pos
    while end < len(text) and not _TOKEN_START_RE.match(text[end]):
        end += 1
    return text[pos:max(end, pos + 1)]


class TokenStream:
    """Lazy, restartable token sequence over one formula body.

    Each iteration re-lexes the text, so the stream can be walked any
    number of times.
    """

    __slots__ = ("text",)

    def __init__(self, text: str) -> None:
        self.text = text

    def __iter__(self) -> Iterator[Token]:
        try:
            yield from _lexer.lex(self.text)
        except UnexpectedCharacters as exc:
            pos = exc.pos_in_stream
            raise UnrecognizedTokenError(_offending_run(self.text, pos), position=pos) from exc

    def __repr__(self) -> str:
        return f"TokenStream({self.text!r})"


def tokenize(text: str) -> TokenStream:
    """Tokenize a formula body (the text after the leading ``=``).

    Args:
        text: Formula body, e.g. ``"A1 + 3 * (B2 - 1)"``.

    Returns:
        A restartable stream of Lark tokens whose ``type`` is one of
        ``NUMBER``, ``NAME``, ``OPERATOR``, ``LPAR``, ``RPAR``.

    Raises:
        UnrecognizedTokenError: While iterating, on an unknown character.
    """
    return TokenStream(text)


def is_cell_reference(name: str) -> bool:
    """True when *name* has the shape of a cell reference (letters then digits)."""
    return bool(_CELL_REF_RE.match(name))


def extract_cell_references(text: str) -> list[str]:
    """Extract cell-reference names from a formula body, in order of first use.

    Names are returned as written; duplicates are dropped.  Names that are
    not cell-shaped (e.g. ``rate``) are ignored.

    Raises:
        UnrecognizedTokenError: If the body cannot be tokenized.
    """
    refs: list[str] = []
    seen: set[str] = set()
    for token in tokenize(text):
        if token.type == NAME and is_cell_reference(token) and str(token) not in seen:
            refs.append(str(token))
            seen.add(str(token))
    return refs
