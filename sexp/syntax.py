"""
S-Expression Syntax v1.0
========================

Objects:
    <object>        ::= <string> | <list>
    <list>          ::= "(" <object>* ")"
    <string>        ::= [ "[" <simple-string> "]" ] <simple-string>
    <simple-string> ::= <token> | <verbatim> | <quoted> | <hexadecimal> | <base64>

Simple string forms:
    token           abc-def          token characters, first is not a digit
    verbatim        3:abc            decimal length, colon, raw octets
    quoted          "abc"            optional decimal length prefix
    hexadecimal     #616263#         optional decimal length prefix
    base64          |YWJj|           optional decimal length prefix

Transport:
    {KDM6YWJjKQ==}                   base64 of a canonical object

Print modes:
    canonical       verbatim strings only, no whitespace (hash/sign input)
    base64          canonical bytes wrapped as {...}
    advanced        pretty-printed, shortest text-safe form per string

Whitespace and "=" are ignored inside hexadecimal and base64 regions, so printers
may wrap long regions across lines.
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple

# End-of-input marker for the one-character lookahead
EOF = -1

# Delimiters
LIST_OPEN = ord("(")
LIST_CLOSE = ord(")")
HINT_OPEN = ord("[")
HINT_CLOSE = ord("]")
TRANSPORT_OPEN = ord("{")
TRANSPORT_CLOSE = ord("}")
VERBATIM_MARK = ord(":")
QUOTE = ord('"')
HEX_MARK = ord("#")
BASE64_MARK = ord("|")
BACKSLASH = ord("\\")
PAD = ord("=")

HEX_DIGITS = b"0123456789ABCDEF"
BASE64_DIGITS = b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"

# Token punctuation (beyond letters and digits)
TOKEN_PUNCTUATION = b"-./_:*+="

WHITESPACE_CHARS = b" \t\n\v\f\r"


class PrintMode(Enum):
    CANONICAL = 1   # standard for hashing and transmission
    BASE64 = 2      # base64 version of canonical
    ADVANCED = 3    # pretty-printed

    @classmethod
    def from_name(cls, name: str) -> PrintMode:
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(
                f"Unknown print mode: {name!r}. "
                f"Use: {', '.join(m.name.lower() for m in cls)}"
            ) from None


# Printer defaults
DEFAULT_LINE_LENGTH = 75

# Safety limits
MAX_INPUT_SIZE = 100 * 1024 * 1024  # 100MB max file size for reader
MAX_DECIMAL_DIGITS = 9              # longest accepted length prefix
MAX_NESTING_DEPTH = 256             # deepest accepted list nesting

# Sniffing (SexpReader.is_sexp_bytes)
MAX_SNIFF_BYTES = 64


# =============================================================================
# Character classification
# =============================================================================

class CharClass(NamedTuple):
    """Classification of a single octet."""
    is_whitespace: bool
    is_dec_digit: bool
    dec_value: int
    is_hex_digit: bool
    hex_value: int
    is_base64_digit: bool
    base64_value: int
    is_token_char: bool
    is_alpha: bool


def _build_tables() -> tuple[tuple, ...]:
    whitespace = [False] * 256
    dec_digit = [False] * 256
    dec_value = [0] * 256
    hex_digit = [False] * 256
    hex_value = [0] * 256
    base64_digit = [False] * 256
    base64_value = [0] * 256
    token_char = [False] * 256
    alpha = [False] * 256

    for c in WHITESPACE_CHARS:
        whitespace[c] = True
    for c in range(ord("0"), ord("9") + 1):
        dec_digit[c] = hex_digit[c] = base64_digit[c] = True
        dec_value[c] = hex_value[c] = c - ord("0")
    for c in range(ord("a"), ord("z") + 1):
        alpha[c] = True
    for c in range(ord("A"), ord("Z") + 1):
        alpha[c] = True
    for c in b"abcdef":
        hex_digit[c] = True
        hex_value[c] = c - ord("a") + 10
    for c in b"ABCDEF":
        hex_digit[c] = True
        hex_value[c] = c - ord("A") + 10
    for value, c in enumerate(BASE64_DIGITS):
        base64_digit[c] = True
        base64_value[c] = value
    for c in range(256):
        token_char[c] = alpha[c] or dec_digit[c]
    for c in TOKEN_PUNCTUATION:
        token_char[c] = True

    return (
        tuple(whitespace), tuple(dec_digit), tuple(dec_value),
        tuple(hex_digit), tuple(hex_value),
        tuple(base64_digit), tuple(base64_value),
        tuple(token_char), tuple(alpha),
    )


# Built once at import; read-only afterwards
(
    _WHITESPACE, _DEC_DIGIT, DEC_VALUE,
    _HEX_DIGIT, HEX_VALUE,
    _BASE64_DIGIT, BASE64_VALUE,
    _TOKEN_CHAR, _ALPHA,
) = _build_tables()

_NOT_A_CHAR = CharClass(False, False, 0, False, 0, False, 0, False, False)


def classify(c: int) -> CharClass:
    """Return every classification of octet ``c`` (``EOF`` classifies as nothing)."""
    if not 0 <= c <= 255:
        return _NOT_A_CHAR
    return CharClass(
        is_whitespace=_WHITESPACE[c],
        is_dec_digit=_DEC_DIGIT[c],
        dec_value=DEC_VALUE[c],
        is_hex_digit=_HEX_DIGIT[c],
        hex_value=HEX_VALUE[c],
        is_base64_digit=_BASE64_DIGIT[c],
        base64_value=BASE64_VALUE[c],
        is_token_char=_TOKEN_CHAR[c],
        is_alpha=_ALPHA[c],
    )


def is_white_space(c: int) -> bool:
    return 0 <= c <= 255 and _WHITESPACE[c]


def is_dec_digit(c: int) -> bool:
    return 0 <= c <= 255 and _DEC_DIGIT[c]


def is_hex_digit(c: int) -> bool:
    return 0 <= c <= 255 and _HEX_DIGIT[c]


def is_base64_digit(c: int) -> bool:
    return 0 <= c <= 255 and _BASE64_DIGIT[c]


def is_token_char(c: int) -> bool:
    return 0 <= c <= 255 and _TOKEN_CHAR[c]


def is_alpha(c: int) -> bool:
    return 0 <= c <= 255 and _ALPHA[c]


def is_text_safe(c: int) -> bool:
    """True for octets that may appear unescaped in a quoted string."""
    return c == 0x20 or is_token_char(c)


def describe_char(c: int) -> str:
    """Human-readable rendering of an octet for error messages."""
    if c == EOF:
        return "end of input"
    if 0x21 <= c <= 0x7E:
        return f"{chr(c)!r} (0x{c:02x})"
    return f"0x{c:02x}"


# =============================================================================
# Quoted-string escapes
# =============================================================================

# Backslash escapes recognised inside quoted strings: escape letter -> octet
QUOTED_ESCAPES = {
    ord("b"): 0x08,
    ord("t"): 0x09,
    ord("v"): 0x0B,
    ord("n"): 0x0A,
    ord("f"): 0x0C,
    ord("r"): 0x0D,
    ord('"'): ord('"'),
    ord("'"): ord("'"),
    ord("\\"): ord("\\"),
}

OCTAL_ESCAPE_DIGITS = 3
HEX_ESCAPE_DIGITS = 2
