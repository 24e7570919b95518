"""
S-expression Reader - Recursive-descent scanner for all three encodings.

Scanner state:
  - byte size: 8 outside coded regions, 4 inside #hex#, 6 inside |base64| and {transport}
  - bit buffer: digits waiting to be assembled into octets
  - one-character lookahead (next_char)
  - position (raw bytes consumed) and count (decoded octets) for diagnostics

Strictness:
  - Any malformed lexeme is fatal; the scanner never resynchronizes
  - Non-zero bits left at the end of a coded region are rejected
  - Declared lengths must match the decoded string exactly
  - Nesting depth and length prefixes are bounded (see sexp.syntax limits)
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import BinaryIO, Iterator

from sexp.bits import BitBuffer
from sexp.errors import (
    LexicalError, PaddingError, SexpIOError, StructuralError, UnexpectedEOFError,
)
from sexp.objects import SexpList, SexpObject, SexpString, SimpleString
from sexp.syntax import (
    BACKSLASH, BASE64_MARK, BASE64_VALUE, DEC_VALUE, EOF, HEX_ESCAPE_DIGITS, HEX_MARK,
    HEX_VALUE, HINT_CLOSE, HINT_OPEN, LIST_CLOSE, LIST_OPEN, MAX_DECIMAL_DIGITS,
    MAX_INPUT_SIZE, MAX_NESTING_DEPTH, MAX_SNIFF_BYTES, OCTAL_ESCAPE_DIGITS, PAD, QUOTE,
    QUOTED_ESCAPES, TRANSPORT_CLOSE, TRANSPORT_OPEN, VERBATIM_MARK,
    describe_char, is_base64_digit, is_dec_digit, is_hex_digit, is_token_char,
    is_white_space,
)

logger = logging.getLogger(__name__)

_CR = ord("\r")
_LF = ord("\n")


class InputStream:
    """
    Decoder over a byte source.

    Usage:
        stream = InputStream(io.BytesIO(b"(3:abc)"))
        obj = stream.scan_to_eof()
    """

    def __init__(self, source: BinaryIO, max_depth: int = MAX_NESTING_DEPTH) -> None:
        self._source = source
        self.byte_size = 8
        self.next_char = ord(" ")  # primes skip_white_space
        self._bits = BitBuffer()
        self._region_end = EOF     # raw character that closes the current coded region
        self.count = 0             # decoded octets delivered
        self.position = 0          # raw bytes read from the source
        self.max_depth = max_depth
        self._depth = 0

    # --- character level ---

    def _read_raw(self) -> int:
        try:
            b = self._source.read(1)
        except OSError as exc:
            raise SexpIOError(f"Input source failed: {exc}", self.position) from exc
        if not b:
            return EOF
        self.position += 1
        return b[0]

    def set_byte_size(self, new_byte_size: int, region_end: int = EOF) -> InputStream:
        """Change scanning mode; the bit buffer starts empty in the new mode."""
        self.byte_size = new_byte_size
        self._region_end = region_end
        self._bits.reset()
        return self

    def get_char(self) -> InputStream:
        """Advance next_char to the next octet (decoded, inside coded regions)."""
        if self.byte_size == 8:
            self.next_char = self._read_raw()
            if self.next_char != EOF:
                self.count += 1
            return self

        while True:
            c = self._read_raw()
            if c == EOF:
                region = "hexadecimal" if self.byte_size == 4 else "base64"
                raise UnexpectedEOFError(
                    f"Unterminated {region} region", self.position,
                    expected=describe_char(self._region_end), found=describe_char(EOF),
                )
            if c == self._region_end:
                self._end_region()
                self.next_char = c
                return self
            if is_white_space(c):
                continue
            if self.byte_size == 6 and c == PAD:
                continue
            if self.byte_size == 6 and is_base64_digit(c):
                self._bits.push(BASE64_VALUE[c], 6)
            elif self.byte_size == 4 and is_hex_digit(c):
                self._bits.push(HEX_VALUE[c], 4)
            else:
                alphabet = "hexadecimal" if self.byte_size == 4 else "base64"
                raise LexicalError(
                    f"Illegal character in {self.byte_size}-bit {alphabet} region",
                    self.position, expected=f"{alphabet} digit", found=describe_char(c),
                )
            if self._bits.has(8):
                self.next_char = self._bits.take(8)
                self.count += 1
                return self

    def _end_region(self) -> None:
        n_bits = self._bits.n_bits
        if self.byte_size == 4 and n_bits:
            raise PaddingError("Odd number of digits in hexadecimal region", self.position)
        if self.byte_size == 6:
            if n_bits >= 6:
                raise PaddingError("Dangling digit at end of base64 region", self.position)
            if self._bits.leftover():
                raise PaddingError(
                    f"Base64 region ended with {n_bits} non-zero unused bits", self.position,
                )
        self.set_byte_size(8)

    def skip_white_space(self) -> InputStream:
        while is_white_space(self.next_char):
            self.get_char()
        return self

    def skip_char(self, c: int) -> InputStream:
        """Consume next_char, which must be c."""
        if self.next_char != c:
            self._unexpected(describe_char(c))
        return self.get_char()

    def _unexpected(self, expected: str, message: str = "Unexpected character") -> None:
        if self.next_char == EOF:
            raise UnexpectedEOFError("Unexpected end of input", self.position, expected=expected)
        if self.next_char in (LIST_CLOSE, HINT_CLOSE, TRANSPORT_CLOSE):
            raise StructuralError(
                "Mismatched delimiter", self.position,
                expected=expected, found=describe_char(self.next_char),
            )
        raise StructuralError(message, self.position, expected=expected, found=describe_char(self.next_char))

    # --- objects ---

    def scan_to_eof(self) -> SexpObject:
        """Scan exactly one object; only whitespace may follow it."""
        obj = self.scan_object()
        self.skip_white_space()
        if self.next_char != EOF:
            raise StructuralError(
                "Trailing data after object", self.position,
                expected=describe_char(EOF), found=describe_char(self.next_char),
            )
        return obj

    def iter_objects(self) -> Iterator[SexpObject]:
        """Yield objects until end of input."""
        while True:
            self.skip_white_space()
            if self.next_char == EOF:
                return
            yield self.scan_object()

    def scan_object(self) -> SexpObject:
        self.skip_white_space()
        c = self.next_char
        if c == TRANSPORT_OPEN:
            self._enter_region(6, TRANSPORT_OPEN, TRANSPORT_CLOSE)
            obj = self.scan_object()
            self.skip_white_space()
            if self.byte_size != 8:
                raise StructuralError(
                    "Extra data inside base64 transport region", self.position,
                    expected=describe_char(TRANSPORT_CLOSE), found=describe_char(self.next_char),
                )
            self.skip_char(TRANSPORT_CLOSE)
            return obj
        if c == LIST_OPEN:
            return self.scan_list()
        if c in (HINT_OPEN, QUOTE, HEX_MARK, BASE64_MARK) or is_token_char(c):
            return self.scan_string()
        if c == EOF:
            raise UnexpectedEOFError("Unexpected end of input", self.position, expected="object")
        if c in (LIST_CLOSE, HINT_CLOSE, TRANSPORT_CLOSE):
            raise StructuralError(
                "Mismatched delimiter", self.position, expected="object", found=describe_char(c),
            )
        raise LexicalError("Illegal character", self.position, expected="object", found=describe_char(c))

    def scan_list(self) -> SexpList:
        """Scan a list and every list nested in it, keeping open lists on a stack."""
        self._open_list()
        stack = [SexpList()]
        while True:
            self.skip_white_space()
            c = self.next_char
            if c == LIST_CLOSE:
                self.skip_char(LIST_CLOSE)
                self._depth -= 1
                done = stack.pop()
                if not stack:
                    return done
                stack[-1].append(done)
            elif c == LIST_OPEN:
                self._open_list()
                stack.append(SexpList())
            elif c == EOF:
                raise UnexpectedEOFError(
                    "Unterminated list", self.position, expected=describe_char(LIST_CLOSE),
                )
            else:
                stack[-1].append(self.scan_object())

    def _open_list(self) -> None:
        self._depth += 1
        if self._depth > self.max_depth:
            raise StructuralError(f"List nesting deeper than {self.max_depth}", self.position)
        self.skip_char(LIST_OPEN)

    def scan_string(self) -> SexpString:
        hint = None
        if self.next_char == HINT_OPEN:
            self.skip_char(HINT_OPEN)
            hint = self.scan_simple_string()
            self.skip_white_space()
            self.skip_char(HINT_CLOSE)
        return SexpString(self.scan_simple_string(), presentation_hint=hint)

    def scan_simple_string(self) -> SimpleString:
        self.skip_white_space()
        ss = SimpleString()
        c = self.next_char
        if is_dec_digit(c):
            length = self.scan_decimal_string()
            c = self.next_char
            if c == VERBATIM_MARK:
                self.scan_verbatim_string(ss, length)
            elif c == QUOTE:
                self.scan_quoted_string(ss, length)
            elif c == HEX_MARK:
                self.scan_hexadecimal_string(ss, length)
            elif c == BASE64_MARK:
                self.scan_base64_string(ss, length)
            else:
                self._unexpected("':', '\"', '#' or '|' after length prefix", "Missing string after length prefix")
        elif is_token_char(c):
            self.scan_token(ss)
        elif c == QUOTE:
            self.scan_quoted_string(ss)
        elif c == HEX_MARK:
            self.scan_hexadecimal_string(ss)
        elif c == BASE64_MARK:
            self.scan_base64_string(ss)
        elif c in (EOF, LIST_CLOSE, HINT_CLOSE, TRANSPORT_CLOSE):
            self._unexpected("simple string")
        else:
            raise LexicalError(
                "Illegal character at start of simple string", self.position,
                expected="simple string", found=describe_char(c),
            )
        return ss

    def scan_decimal_string(self) -> int:
        value = 0
        digits = 0
        while is_dec_digit(self.next_char):
            digits += 1
            if digits > MAX_DECIMAL_DIGITS:
                raise LexicalError(
                    f"Decimal length prefix longer than {MAX_DECIMAL_DIGITS} digits", self.position,
                )
            value = 10 * value + DEC_VALUE[self.next_char]
            self.get_char()
        return value

    def scan_token(self, ss: SimpleString) -> None:
        while is_token_char(self.next_char):
            ss.append(self.next_char)
            self.get_char()

    def scan_verbatim_string(self, ss: SimpleString, length: int) -> None:
        self.skip_char(VERBATIM_MARK)
        for _ in range(length):
            if self.next_char == EOF:
                raise UnexpectedEOFError(
                    f"Verbatim string declared {length} octets, input ended after {len(ss)}",
                    self.position,
                )
            ss.append(self.next_char)
            self.get_char()

    def scan_quoted_string(self, ss: SimpleString, length: int | None = None) -> None:
        self.skip_char(QUOTE)
        while True:
            c = self.next_char
            if c == QUOTE:
                break
            if c == EOF:
                raise UnexpectedEOFError(
                    "Unterminated quoted string", self.position, expected=describe_char(QUOTE),
                )
            if c == BACKSLASH:
                self.get_char()
                self._scan_escape(ss)
            else:
                ss.append(c)
                self.get_char()
            if length is not None and len(ss) > length:
                raise StructuralError(
                    f"Quoted string longer than declared length {length}", self.position,
                )
        if length is not None and len(ss) != length:
            raise StructuralError(
                f"Declared length was {length}, but quoted string ended after {len(ss)}",
                self.position,
            )
        self.skip_char(QUOTE)

    def _scan_escape(self, ss: SimpleString) -> None:
        """Decode the escape after a backslash; leaves next_char just past it."""
        c = self.next_char
        if c in QUOTED_ESCAPES:
            ss.append(QUOTED_ESCAPES[c])
            self.get_char()
        elif ord("0") <= c <= ord("7"):
            value = 0
            for _ in range(OCTAL_ESCAPE_DIGITS):
                if not ord("0") <= self.next_char <= ord("7"):
                    raise LexicalError(
                        "Bad octal escape in quoted string", self.position,
                        expected="octal digit", found=describe_char(self.next_char),
                    )
                value = 8 * value + (self.next_char - ord("0"))
                self.get_char()
            if value > 0xFF:
                raise LexicalError(f"Octal escape \\{value:o} out of range", self.position)
            ss.append(value)
        elif c == ord("x"):
            self.get_char()
            value = 0
            for _ in range(HEX_ESCAPE_DIGITS):
                if not is_hex_digit(self.next_char):
                    raise LexicalError(
                        "Bad hex escape in quoted string", self.position,
                        expected="hex digit", found=describe_char(self.next_char),
                    )
                value = 16 * value + HEX_VALUE[self.next_char]
                self.get_char()
            ss.append(value)
        elif c in (_LF, _CR):
            # line continuation: LF, CR, CRLF or LFCR is dropped
            self.get_char()
            if self.next_char == (_CR if c == _LF else _LF):
                self.get_char()
        elif c == EOF:
            raise UnexpectedEOFError("Unterminated escape in quoted string", self.position)
        else:
            raise LexicalError(
                "Unknown escape in quoted string", self.position,
                expected="escape character", found=describe_char(c),
            )

    def scan_hexadecimal_string(self, ss: SimpleString, length: int | None = None) -> None:
        self._enter_region(4, HEX_MARK, HEX_MARK)
        self._scan_coded_region(ss, HEX_MARK)
        self._check_declared_length(ss, length, "hexadecimal")

    def scan_base64_string(self, ss: SimpleString, length: int | None = None) -> None:
        self._enter_region(6, BASE64_MARK, BASE64_MARK)
        self._scan_coded_region(ss, BASE64_MARK)
        self._check_declared_length(ss, length, "base64")

    def _enter_region(self, byte_size: int, opener: int, closer: int) -> None:
        if self.byte_size != 8:
            raise StructuralError(
                "Coded region nested inside another coded region", self.position,
                found=describe_char(opener),
            )
        # byte size must change before the opener is skipped
        self.set_byte_size(byte_size, closer)
        self.skip_char(opener)

    def _scan_coded_region(self, ss: SimpleString, closer: int) -> None:
        # a decoded octet equal to the closer is data while still inside the region
        while self.next_char != closer or self.byte_size != 8:
            ss.append(self.next_char)
            self.get_char()
        self.skip_char(closer)

    def _check_declared_length(self, ss: SimpleString, length: int | None, form: str) -> None:
        if length is not None and len(ss) != length:
            raise StructuralError(
                f"Declared length was {length}, but {form} string decoded to {len(ss)} octets",
                self.position,
            )


class SexpReader:
    """
    Reader facade over InputStream.

    Usage:
        obj = SexpReader.parse(b"(3:abc)")
        obj = SexpReader.read("key.sexp")
        objs = SexpReader.parse_all(b"(a)(b)")
    """

    @staticmethod
    def is_sexp_bytes(data: bytes) -> bool:
        """Fast check if bytes look like the start of an S-expression."""
        head = data[:MAX_SNIFF_BYTES].lstrip(b" \t\n\v\f\r")
        if not head:
            return False
        c = head[0]
        return c in (LIST_OPEN, TRANSPORT_OPEN, HINT_OPEN, QUOTE, HEX_MARK, BASE64_MARK) or is_token_char(c)

    @staticmethod
    def is_sexp(path: str | Path) -> bool:
        """Fast check if a file looks like an S-expression. Reads only the first bytes."""
        with open(path, "rb") as f:
            head = f.read(MAX_SNIFF_BYTES)
        return SexpReader.is_sexp_bytes(head)

    @classmethod
    def parse(cls, data: bytes, max_size: int = MAX_INPUT_SIZE) -> SexpObject:
        """Parse bytes holding exactly one object (any encoding)."""
        cls._check_size(len(data), max_size)
        obj = InputStream(io.BytesIO(data)).scan_to_eof()
        logger.debug("Parsed %d bytes into %s", len(data), type(obj).__name__)
        return obj

    @classmethod
    def parse_all(cls, data: bytes, max_size: int = MAX_INPUT_SIZE) -> list[SexpObject]:
        """Parse bytes holding a sequence of objects."""
        cls._check_size(len(data), max_size)
        objects = list(InputStream(io.BytesIO(data)).iter_objects())
        logger.debug("Parsed %d bytes into %d objects", len(data), len(objects))
        return objects

    @classmethod
    def read(cls, path: str | Path, max_size: int = MAX_INPUT_SIZE) -> SexpObject:
        """Parse a file holding exactly one object."""
        return cls.parse(cls._read_file(path, max_size), max_size)

    @classmethod
    def read_all(cls, path: str | Path, max_size: int = MAX_INPUT_SIZE) -> list[SexpObject]:
        """Parse a file holding a sequence of objects."""
        return cls.parse_all(cls._read_file(path, max_size), max_size)

    @staticmethod
    def _read_file(path: str | Path, max_size: int) -> bytes:
        path = Path(path)
        file_size = path.stat().st_size
        SexpReader._check_size(file_size, max_size)
        return path.read_bytes()

    @staticmethod
    def _check_size(size: int, max_size: int) -> None:
        if size > max_size:
            raise ValueError(
                f"Input size {size} exceeds maximum {max_size} bytes. "
                f"Pass max_size= to override."
            )


def loads(data: bytes | str) -> SexpObject:
    """Parse one object from bytes (str is encoded as UTF-8)."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return SexpReader.parse(data)


def load(fp: BinaryIO) -> SexpObject:
    """Parse one object from a binary file-like object, reading to its end."""
    return InputStream(fp).scan_to_eof()
