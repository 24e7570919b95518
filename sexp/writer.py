"""
S-expression Writer - Serializes object trees in canonical, base64 or advanced form.

Output stream state:
  - byte size: 8 (raw octets), 6 (base64 digits) or 4 (hex digits)
  - bit buffer: octets waiting to go out as 4/6-bit digits
  - column / max_column / indent for the advanced pretty-printer

Canonical output is a single unbroken byte sequence and is byte-for-byte
reproducible; it is what signatures and fingerprints are computed over.
"""

from __future__ import annotations

import io
import logging
from typing import BinaryIO

from sexp.bits import BitBuffer
from sexp.errors import SexpIOError
from sexp.objects import SexpObject, SimpleString
from sexp.syntax import (
    BASE64_DIGITS, DEFAULT_LINE_LENGTH, HEX_DIGITS, PAD, TRANSPORT_CLOSE, TRANSPORT_OPEN,
    PrintMode,
)

logger = logging.getLogger(__name__)


class OutputStream:
    """
    Mode-aware printer over a byte sink.

    Usage:
        os = OutputStream(sink, max_column=75)
        os.print_object(obj, PrintMode.ADVANCED)
    """

    def __init__(self, sink: BinaryIO, max_column: int = DEFAULT_LINE_LENGTH) -> None:
        if max_column < 0:
            raise ValueError(f"max_column must be >= 0, got {max_column}")
        self._sink = sink
        self.byte_size = 8
        self._bits = BitBuffer()
        self.base64_count = 0   # hex or base64 digits printed in this region
        self.mode = PrintMode.CANONICAL
        self.column = 0         # column where next character will go
        self.max_column = max_column  # 0 = no maximum
        self.indent = 0

    # --- low level ---

    def put_char(self, c: int) -> OutputStream:
        """Write one octet to the sink."""
        try:
            self._sink.write(bytes((c & 0xFF,)))
        except OSError as exc:
            raise SexpIOError(f"Output sink failed: {exc}") from exc
        self.column += 1
        return self

    def var_put_char(self, c: int) -> OutputStream:
        """Write one octet in the current byte size (raw, hex digits or base64 digits)."""
        if self.byte_size == 8:
            return self.put_char(c)
        self._bits.push(c, 8)
        while self._bits.has(self.byte_size):
            if self.max_column > 0 and self.column >= self.max_column:
                self.new_line(self.mode)
            self._put_digit(self._bits.take(self.byte_size))
        return self

    def _put_digit(self, value: int) -> None:
        if self.byte_size == 4:
            self.put_char(HEX_DIGITS[value])
        else:
            self.put_char(BASE64_DIGITS[value])
        self.base64_count += 1

    def new_line(self, mode: PrintMode) -> OutputStream:
        """Go to the next line; in advanced mode also indent."""
        if mode in (PrintMode.ADVANCED, PrintMode.BASE64):
            self.put_char(ord("\n"))
            self.column = 0
        if mode == PrintMode.ADVANCED:
            i = 0
            while i < self.indent and 4 * i < self.max_column:
                self.put_char(ord(" "))
                i += 1
        return self

    def _flush_bits(self) -> None:
        """Emit any partial digit, then '=' padding for base64 regions."""
        if self.byte_size == 8:
            return
        value = self._bits.drain(self.byte_size)
        if value is not None:
            self._put_digit(value)
        if self.byte_size == 6:
            while self.base64_count % 4:
                if self.max_column > 0 and self.column >= self.max_column:
                    self.new_line(self.mode)
                self.put_char(PAD)
                self.base64_count += 1

    def flush(self) -> OutputStream:
        self._flush_bits()
        try:
            self._sink.flush()
        except OSError as exc:
            raise SexpIOError(f"Output sink failed: {exc}") from exc
        return self

    def change_output_byte_size(self, new_byte_size: int, mode: PrintMode) -> OutputStream:
        """Switch between raw, hex and base64 output; pending bits are flushed first."""
        if new_byte_size not in (4, 6, 8):
            raise ValueError(f"Illegal output byte size {new_byte_size}")
        if new_byte_size != 8 and self.byte_size != 8:
            raise ValueError(f"Can't change output byte size from {self.byte_size} to {new_byte_size}")
        self._flush_bits()
        self.byte_size = new_byte_size
        self.mode = mode
        self._bits.reset()
        self.base64_count = 0
        return self

    def print_decimal(self, n: int) -> OutputStream:
        for c in str(n).encode("ascii"):
            self.var_put_char(c)
        return self

    def reset_column(self) -> int:
        self.column = 0
        return self.column

    def inc_indent(self) -> OutputStream:
        self.indent += 1
        return self

    def dec_indent(self) -> OutputStream:
        self.indent -= 1
        return self

    # --- objects ---

    def print_canonical(self, obj: SexpObject | SimpleString) -> OutputStream:
        if isinstance(obj, SimpleString):
            return obj.print_canonical_verbatim(self)
        return obj.print_canonical(self)

    def print_advanced(self, obj: SexpObject | SimpleString) -> OutputStream:
        return obj.print_advanced(self)

    def print_base64(self, obj: SexpObject) -> OutputStream:
        """Canonical form of obj, base64-encoded and wrapped in braces."""
        self.var_put_char(TRANSPORT_OPEN)
        self.change_output_byte_size(6, PrintMode.BASE64)
        obj.print_canonical(self)
        self.change_output_byte_size(8, PrintMode.BASE64)
        return self.var_put_char(TRANSPORT_CLOSE)

    def print_object(self, obj: SexpObject, mode: PrintMode) -> OutputStream:
        """Print obj in the given mode and flush the sink."""
        self.mode = mode
        if mode == PrintMode.CANONICAL:
            self.print_canonical(obj)
        elif mode == PrintMode.BASE64:
            self.print_base64(obj)
        else:
            self.print_advanced(obj)
        return self.flush()


class SexpWriter:

    @staticmethod
    def serialize(
        obj: SexpObject,
        mode: PrintMode = PrintMode.CANONICAL,
        max_column: int = DEFAULT_LINE_LENGTH,
    ) -> bytes:
        """Serialize an object to bytes. Pure: the object is never mutated."""
        buf = io.BytesIO()
        OutputStream(buf, max_column=max_column).print_object(obj, mode)
        data = buf.getvalue()
        logger.debug("Serialized %s in %s mode (%d bytes)", type(obj).__name__, mode.name.lower(), len(data))
        return data

    @staticmethod
    def write(
        obj: SexpObject,
        path: str,
        mode: PrintMode = PrintMode.CANONICAL,
        max_column: int = DEFAULT_LINE_LENGTH,
        file_mode: int = 0o644,
    ) -> int:
        """Write an object to a file atomically. Returns bytes written.

        Uses write-to-temp-then-rename so the target is never partially
        written. For appending many objects over time use SexpStreamWriter.
        """
        import os
        import tempfile
        data = SexpWriter.serialize(obj, mode, max_column)
        dir_name = os.path.dirname(os.path.abspath(path)) or "."
        fd, tmp_path = tempfile.mkstemp(dir=dir_name, suffix=".sexp.tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, file_mode)
            os.replace(tmp_path, path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        logger.debug("Wrote %d bytes to %s", len(data), path)
        return len(data)


def dumps(
    obj: SexpObject,
    mode: PrintMode | str = PrintMode.CANONICAL,
    max_column: int = DEFAULT_LINE_LENGTH,
) -> bytes:
    """Serialize obj; mode may be a PrintMode or its name."""
    if isinstance(mode, str):
        mode = PrintMode.from_name(mode)
    return SexpWriter.serialize(obj, mode, max_column)


def dump(
    obj: SexpObject,
    fp: BinaryIO,
    mode: PrintMode | str = PrintMode.CANONICAL,
    max_column: int = DEFAULT_LINE_LENGTH,
) -> None:
    """Print obj onto a binary file-like object."""
    if isinstance(mode, str):
        mode = PrintMode.from_name(mode)
    OutputStream(fp, max_column=max_column).print_object(obj, mode)
