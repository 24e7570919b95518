"""
S-expression object model.

    SimpleString   owned octet sequence, the atomic payload
    SexpString     SimpleString data plus an optional presentation hint
    SexpList       ordered children, any mix of SexpString and SexpList

Both object kinds print themselves onto an OutputStream (see sexp.writer):
canonical form always uses the verbatim encoding for strings; advanced form
picks the shortest legal printed form for each simple string.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterator, Union

from sexp.syntax import (
    BACKSLASH, BASE64_MARK, HEX_MARK, HINT_CLOSE, HINT_OPEN, LIST_CLOSE, LIST_OPEN,
    QUOTE, QUOTED_ESCAPES, VERBATIM_MARK, PrintMode,
    is_dec_digit, is_text_safe, is_token_char,
)

if TYPE_CHECKING:
    from sexp.writer import OutputStream


class StringForm(Enum):
    """Printed forms of a simple string, in tie-breaking preference order."""
    TOKEN = "token"
    VERBATIM = "verbatim"
    QUOTED = "quoted"
    HEXADECIMAL = "hexadecimal"
    BASE64 = "base64"


# Octet -> escape letter, for printing quoted strings that need escapes
_ESCAPE_LETTERS = {octet: letter for letter, octet in QUOTED_ESCAPES.items() if letter != ord("'")}


# =============================================================================
# SimpleString
# =============================================================================

class SimpleString(bytearray):
    """An arbitrary-length octet string with no meaning of its own."""

    def append(self, c: int) -> SimpleString:  # type: ignore[override]
        super().append(c & 0xFF)
        return self

    # --- printed lengths, one per form ---

    def advanced_length_token(self) -> int:
        return len(self)

    def advanced_length_verbatim(self) -> int:
        return len(str(len(self))) + 1 + len(self)

    def advanced_length_quoted(self) -> int:
        return 1 + len(self) + 1

    def advanced_length_hexadecimal(self) -> int:
        return 1 + 2 * len(self) + 1

    def advanced_length_base64(self) -> int:
        return 2 + 4 * ((len(self) + 2) // 3)

    def printed_length(self, form: StringForm) -> int:
        return _LENGTHS[form](self)

    # --- legality ---

    def can_print_as_token(self) -> bool:
        if not self or is_dec_digit(self[0]):
            return False
        return all(is_token_char(c) for c in self)

    def can_print_as_quoted_string(self) -> bool:
        return all(is_text_safe(c) for c in self)

    def legal_forms(self, os: OutputStream) -> list[StringForm]:
        """Forms this string may take in advanced output, in preference order.

        Verbatim is always legal. Quoted is limited to text-safe payloads, which
        print without escapes. Inside a hex or base64 region only verbatim goes
        through the bit packer, so it is the sole legal form there.
        """
        if os.byte_size != 8:
            return [StringForm.VERBATIM]
        forms = []
        if self.can_print_as_token():
            forms.append(StringForm.TOKEN)
        forms.append(StringForm.VERBATIM)
        if self.can_print_as_quoted_string():
            forms.append(StringForm.QUOTED)
        forms.append(StringForm.HEXADECIMAL)
        forms.append(StringForm.BASE64)
        return forms

    def advanced_form(self, os: OutputStream) -> StringForm:
        """Shortest legal form; ties go to the earlier form in StringForm order."""
        return min(self.legal_forms(os), key=self.printed_length)

    def advanced_length(self, os: OutputStream) -> int:
        return self.printed_length(self.advanced_form(os))

    # --- printing ---

    def print_canonical_verbatim(self, os: OutputStream) -> OutputStream:
        os.print_decimal(len(self))
        os.var_put_char(VERBATIM_MARK)
        for c in self:
            os.var_put_char(c)
        return os

    def print_advanced(self, os: OutputStream) -> OutputStream:
        return _PRINTERS[self.advanced_form(os)](self, os)

    def print_token(self, os: OutputStream) -> OutputStream:
        for c in self:
            os.put_char(c)
        return os

    def print_verbatim(self, os: OutputStream) -> OutputStream:
        os.print_decimal(len(self))
        os.var_put_char(VERBATIM_MARK)
        for c in self:
            os.var_put_char(c)
        return os

    def print_quoted(self, os: OutputStream) -> OutputStream:
        os.put_char(QUOTE)
        for c in self:
            chunk = _quote_octet(c)
            if os.max_column > 0 and os.column >= os.max_column - 2:
                # backslash-newline is dropped by the scanner
                os.put_char(BACKSLASH)
                os.put_char(ord("\n"))
                os.reset_column()
            for out in chunk:
                os.put_char(out)
        return os.put_char(QUOTE)

    def print_hexadecimal(self, os: OutputStream) -> OutputStream:
        os.put_char(HEX_MARK)
        os.change_output_byte_size(4, PrintMode.ADVANCED)
        for c in self:
            os.var_put_char(c)
        os.change_output_byte_size(8, PrintMode.ADVANCED)
        return os.put_char(HEX_MARK)

    def print_base64(self, os: OutputStream) -> OutputStream:
        os.put_char(BASE64_MARK)
        os.change_output_byte_size(6, PrintMode.ADVANCED)
        for c in self:
            os.var_put_char(c)
        os.change_output_byte_size(8, PrintMode.ADVANCED)
        return os.put_char(BASE64_MARK)


def _quote_octet(c: int) -> bytes:
    if c in _ESCAPE_LETTERS:
        return bytes((BACKSLASH, _ESCAPE_LETTERS[c]))
    if is_text_safe(c):
        return bytes((c,))
    return b"\\x%02x" % c


_LENGTHS = {
    StringForm.TOKEN: SimpleString.advanced_length_token,
    StringForm.VERBATIM: SimpleString.advanced_length_verbatim,
    StringForm.QUOTED: SimpleString.advanced_length_quoted,
    StringForm.HEXADECIMAL: SimpleString.advanced_length_hexadecimal,
    StringForm.BASE64: SimpleString.advanced_length_base64,
}

_PRINTERS = {
    StringForm.TOKEN: SimpleString.print_token,
    StringForm.VERBATIM: SimpleString.print_verbatim,
    StringForm.QUOTED: SimpleString.print_quoted,
    StringForm.HEXADECIMAL: SimpleString.print_hexadecimal,
    StringForm.BASE64: SimpleString.print_base64,
}


def _coerce(value: SimpleString | bytes | bytearray | memoryview | str) -> SimpleString:
    if isinstance(value, SimpleString):
        return value
    if isinstance(value, str):
        return SimpleString(value.encode("utf-8"))
    if isinstance(value, (bytes, bytearray, memoryview)):
        return SimpleString(value)
    raise TypeError(f"Expected bytes or str, got {type(value).__name__}")


# =============================================================================
# Objects
# =============================================================================

class SexpObject:
    """Common capabilities of SexpString and SexpList."""

    __slots__ = ()

    def print_canonical(self, os: OutputStream) -> OutputStream:
        raise NotImplementedError

    def print_advanced(self, os: OutputStream) -> OutputStream:
        raise NotImplementedError

    def advanced_length(self, os: OutputStream) -> int:
        raise NotImplementedError

    def to_bytes(self, mode: PrintMode = PrintMode.CANONICAL, **kwargs) -> bytes:
        """Serialize this object to bytes."""
        from sexp.writer import SexpWriter
        return SexpWriter.serialize(self, mode, **kwargs)


@dataclass(eq=True)
class SexpString(SexpObject):
    """A simple string with an optional presentation hint.

    Usage:
        SexpString(b"abc")
        SexpString("abc", presentation_hint="text/plain")
    """

    data: SimpleString
    presentation_hint: SimpleString | None = None

    def __post_init__(self) -> None:
        self.data = _coerce(self.data)
        if self.presentation_hint is not None:
            self.presentation_hint = _coerce(self.presentation_hint)

    def print_canonical(self, os: OutputStream) -> OutputStream:
        if self.presentation_hint is not None:
            os.var_put_char(HINT_OPEN)
            self.presentation_hint.print_canonical_verbatim(os)
            os.var_put_char(HINT_CLOSE)
        return self.data.print_canonical_verbatim(os)

    def print_advanced(self, os: OutputStream) -> OutputStream:
        if self.presentation_hint is not None:
            os.put_char(HINT_OPEN)
            self.presentation_hint.print_advanced(os)
            os.put_char(HINT_CLOSE)
        return self.data.print_advanced(os)

    def advanced_length(self, os: OutputStream) -> int:
        length = 0
        if self.presentation_hint is not None:
            length += 2 + self.presentation_hint.advanced_length(os)
        return length + self.data.advanced_length(os)


@dataclass(eq=True)
class SexpList(SexpObject):
    """Ordered list of objects. May be empty."""

    items: list[SexpObject] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.items = list(self.items)
        for item in self.items:
            _check_child(item)

    def append(self, item: SexpObject) -> SexpList:
        _check_child(item)
        self.items.append(item)
        return self

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[SexpObject]:
        return iter(self.items)

    def __getitem__(self, index: int) -> SexpObject:
        return self.items[index]

    # Nested lists are walked with an explicit stack, not by recursion.

    def print_canonical(self, os: OutputStream) -> OutputStream:
        os.var_put_char(LIST_OPEN)
        stack = [iter(self.items)]
        while stack:
            item = next(stack[-1], None)
            if item is None:
                stack.pop()
                os.var_put_char(LIST_CLOSE)
            elif isinstance(item, SexpList):
                os.var_put_char(LIST_OPEN)
                stack.append(iter(item.items))
            else:
                item.print_canonical(os)
        return os

    def print_advanced(self, os: OutputStream) -> OutputStream:
        _open_advanced(os)
        stack = [enumerate(self.items)]
        while stack:
            entry = next(stack[-1], None)
            if entry is None:
                stack.pop()
                _close_advanced(os)
                continue
            i, item = entry
            if i:
                if os.max_column > 0 and os.column + 1 + item.advanced_length(os) > os.max_column:
                    os.new_line(PrintMode.ADVANCED)
                else:
                    os.put_char(ord(" "))
            if isinstance(item, SexpList):
                _open_advanced(os)
                stack.append(enumerate(item.items))
            else:
                item.print_advanced(os)
        return os

    def advanced_length(self, os: OutputStream) -> int:
        length = 0
        pending: list[SexpObject] = [self]
        while pending:
            node = pending.pop()
            if isinstance(node, SexpList):
                # parens plus one separator between neighbours
                length += 2 + max(len(node.items) - 1, 0)
                pending.extend(node.items)
            else:
                length += node.advanced_length(os)
        return length


def _open_advanced(os: OutputStream) -> None:
    os.put_char(LIST_OPEN)
    os.inc_indent()


def _close_advanced(os: OutputStream) -> None:
    os.dec_indent()
    if os.max_column > 0 and os.column >= os.max_column:
        os.new_line(PrintMode.ADVANCED)
    os.put_char(LIST_CLOSE)


def _check_child(item: object) -> None:
    if not isinstance(item, (SexpString, SexpList)):
        raise TypeError(f"List items must be SexpString or SexpList, got {type(item).__name__}")


Sexp = Union[SexpString, SexpList]


# =============================================================================
# Python values
# =============================================================================

def from_python(value) -> Sexp:
    """Build an object tree from nested Python values.

    bytes/str -> SexpString, (hint, data) tuple -> hinted SexpString,
    list -> SexpList. Existing objects are returned unchanged.
    """
    if isinstance(value, (SexpString, SexpList)):
        return value
    if isinstance(value, (bytes, bytearray, memoryview, str)):
        return SexpString(value)
    if isinstance(value, tuple):
        if len(value) != 2:
            raise TypeError("A tuple must be a (presentation_hint, data) pair")
        hint, data = value
        return SexpString(data, presentation_hint=hint)
    if isinstance(value, list):
        return SexpList([from_python(v) for v in value])
    raise TypeError(f"Cannot convert {type(value).__name__} to an S-expression")


def to_python(obj: SexpObject):
    """Inverse of from_python: strings become bytes, hinted strings (hint, data)."""
    if isinstance(obj, SexpString):
        if obj.presentation_hint is not None:
            return bytes(obj.presentation_hint), bytes(obj.data)
        return bytes(obj.data)
    if isinstance(obj, SexpList):
        return [to_python(item) for item in obj]
    raise TypeError(f"Not an S-expression object: {type(obj).__name__}")
