"""
Lexical helpers shared by the statement and row-filter grammars.

The statement grammar is tokenized; the row-filter grammar is split on
literal separators. Both must ignore separators that appear inside quoted
text, which is what the quote-aware scanners below provide.
"""

from dataclasses import dataclass
from typing import Iterator, List, Optional

from lakekit.errors import StatementParseError

QUOTES = ("'", '"')

# ---------------------------------------------------------------------------
# Token types
# ---------------------------------------------------------------------------

IDENT = "IDENT"
STRING = "STRING"
DOT = "DOT"
COMMA = "COMMA"
LPAREN = "LPAREN"
RPAREN = "RPAREN"
SEMI = "SEMI"
EOF = "EOF"

_PUNCTUATION = {
    ".": DOT,
    ",": COMMA,
    "(": LPAREN,
    ")": RPAREN,
    ";": SEMI,
}


@dataclass
class Token:
    type: str
    value: str
    position: int

    @property
    def upper(self) -> str:
        return self.value.upper()

    def describe(self) -> str:
        if self.type == EOF:
            return "end of input"
        if self.type == STRING:
            return f"'{self.value}'"
        return f"'{self.value}' ({self.type})"


def _is_ident_part(ch: str) -> bool:
    return ch.isalnum() or ch in ("_", "-")


def iter_tokens(source: str) -> Iterator[Token]:
    """
    Lazily tokenize statement text, ending with an EOF token.

    Identifiers are runs of letters, digits, ``_`` and ``-``; strings are
    single- or double-quoted. Tokens are produced on demand so the parser
    can stop at a row filter's WHERE and take the remaining text verbatim;
    anywhere else WHERE is an ordinary identifier.

    Raises:
        StatementParseError: On an unterminated string or unexpected character
    """
    pos = 0
    length = len(source)

    while pos < length:
        ch = source[pos]

        if ch.isspace():
            pos += 1
            continue

        if ch in QUOTES:
            end = source.find(ch, pos + 1)
            if end == -1:
                raise StatementParseError("Unterminated string literal", rule="string_literal", position=pos)
            yield Token(STRING, source[pos + 1:end], pos)
            pos = end + 1
            continue

        if ch in _PUNCTUATION:
            yield Token(_PUNCTUATION[ch], ch, pos)
            pos += 1
            continue

        if _is_ident_part(ch):
            start = pos
            while pos < length and _is_ident_part(source[pos]):
                pos += 1
            yield Token(IDENT, source[start:pos], start)
            continue

        raise StatementParseError(f"Unexpected character '{ch}'", rule="token", position=pos)

    yield Token(EOF, "", length)


def tokenize(source: str) -> List[Token]:
    """Tokenize the whole of ``source``."""
    return list(iter_tokens(source))


def is_identifier(value: str) -> bool:
    """True when ``value`` tokenizes as exactly one identifier."""
    return bool(value) and all(_is_ident_part(ch) for ch in value)


def quote(value: str) -> str:
    """
    Quote ``value`` so it tokenizes back to the same string.

    Strings have no escape syntax, so a value containing a single quote is
    wrapped in double quotes.

    Raises:
        ValueError: If the value contains both quote characters
    """
    if "'" not in value:
        return f"'{value}'"
    if '"' not in value:
        return f'"{value}"'
    raise ValueError(f"Value contains both quote characters and cannot be quoted: {value}")


# ---------------------------------------------------------------------------
# Quote-aware scanning
# ---------------------------------------------------------------------------

def find_outside_quotes(text: str, needle: str, start: int = 0, ignore_case: bool = False) -> int:
    """
    Return the index of the first ``needle`` not inside a quoted span, or -1.

    Unterminated quotes extend to the end of the text.
    """
    haystack = text.upper() if ignore_case else text
    target = needle.upper() if ignore_case else needle
    quote: Optional[str] = None
    pos = start
    while pos < len(text):
        ch = text[pos]
        if quote:
            if ch == quote:
                quote = None
        elif ch in QUOTES:
            quote = ch
        elif haystack.startswith(target, pos):
            return pos
        pos += 1
    return -1


def split_outside_quotes(text: str, separator: str, ignore_case: bool = False) -> List[str]:
    """Split ``text`` on every ``separator`` that is not inside quotes."""
    parts = []
    start = 0
    while True:
        index = find_outside_quotes(text, separator, start, ignore_case)
        if index == -1:
            parts.append(text[start:])
            return parts
        parts.append(text[start:index])
        start = index + len(separator)
