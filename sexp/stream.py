"""
S-expression Streaming Writer - Append objects to a file as they are produced.

Design:
    (3:abc(1:x1:y))(1:a)         <- canonical objects are self-delimiting,
                                    written back to back
    {KDE6YSk=}                   <- base64 and advanced objects end with a newline
    (x y)

  - Every object is flushed and fsynced the moment it is written
  - If the process crashes mid-object, the file holds every complete object
    plus a truncated tail
  - Append mode drops a truncated tail (after backing the file up) and
    continues after the last complete object
  - In base64 and advanced files an object is complete only once its newline
    is written, since a token cut short still scans as a token

Usage:
    with SexpStreamWriter("log.sexp") as w:
        w.write_object(SexpList([SexpString("event"), SexpString("start")]))
        # ... hours later ...
        w.write_object(SexpList([SexpString("event"), SexpString("stop")]))

    # Append mode (resume after crash):
    with SexpStreamWriter("log.sexp", append=True) as w:
        w.write_object(obj)
"""

from __future__ import annotations

import io
import logging
import os
import shutil
from pathlib import Path

from sexp.errors import UnexpectedEOFError
from sexp.objects import SexpObject
from sexp.reader import InputStream
from sexp.syntax import DEFAULT_LINE_LENGTH, EOF, PrintMode, is_white_space
from sexp.writer import OutputStream

logger = logging.getLogger(__name__)

NEWLINE = ord("\n")


class SexpStreamWriter:
    """
    Streaming writer. Objects are flushed to disk immediately.
    """

    def __init__(
        self,
        path: str | Path,
        mode: PrintMode = PrintMode.CANONICAL,
        max_column: int = DEFAULT_LINE_LENGTH,
        append: bool = False,
    ) -> None:
        self.path = Path(path)
        self.mode = mode
        self.max_column = max_column
        self._objects = 0
        self._closed = False

        if append and self.path.exists():
            self._handle, self._objects = _recover(self.path, self.mode)
            self._handle.seek(0, 2)
        else:
            self._handle = open(self.path, "wb")

    def write_object(self, obj: SexpObject) -> int:
        """Write one object to disk immediately. Returns bytes written."""
        if self._closed:
            raise RuntimeError("Cannot write to a closed SexpStreamWriter")

        start = self._handle.tell()
        out = OutputStream(self._handle, max_column=self.max_column)
        out.print_object(obj, self.mode)
        if self.mode != PrintMode.CANONICAL:
            self._handle.write(b"\n")

        # Flush to disk immediately
        self._handle.flush()
        os.fsync(self._handle.fileno())
        self._objects += 1
        written = self._handle.tell() - start
        logger.debug("Streamed object %d to %s (%d bytes)", self._objects, self.path, written)
        return written

    def close(self) -> None:
        if self._closed:
            return
        self._handle.flush()
        os.fsync(self._handle.fileno())
        self._handle.close()
        self._closed = True

    def __enter__(self) -> SexpStreamWriter:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    @property
    def objects_written(self) -> int:
        """Complete objects in the file, including recovered ones in append mode."""
        return self._objects

    @property
    def bytes_written(self) -> int:
        return self._handle.tell() if not self._closed else self.path.stat().st_size


def _recover(path: Path, mode: PrintMode = PrintMode.CANONICAL) -> tuple:
    """
    Recover a streamed file (e.g., after crash).
    Counts complete objects and truncates a tail cut short mid-object.
    Returns (file_handle, object_count) with the handle open for appending.

    Only truncation is repaired; any other format error propagates.
    """
    raw = path.read_bytes()
    stream = InputStream(io.BytesIO(raw))
    count = 0
    good_end = 0
    truncated = False

    try:
        while True:
            stream.skip_white_space()
            if stream.next_char == EOF:
                good_end = len(raw)
                break
            # the lookahead character is the first byte of the next object
            good_end = stream.position - 1
            stream.scan_object()
            if mode != PrintMode.CANONICAL and not _line_ended(stream):
                truncated = True
                break
            count += 1
    except UnexpectedEOFError:
        truncated = True

    if truncated:
        # Create backup before any modifications
        backup_path = path.with_suffix(path.suffix + ".bak")
        shutil.copy2(path, backup_path)
        logger.warning(
            "Truncated tail in %s: keeping %d complete objects (%d of %d bytes), backup at %s",
            path, count, good_end, len(raw), backup_path,
        )

    handle = open(path, "r+b")
    handle.seek(good_end)
    handle.truncate()
    return handle, count


def _line_ended(stream: InputStream) -> bool:
    """Skip blanks after an object. False if input ends before its newline."""
    while stream.next_char != NEWLINE and is_white_space(stream.next_char):
        stream.get_char()
    return stream.next_char != EOF
