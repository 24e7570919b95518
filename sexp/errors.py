"""
S-expression errors.

Every failure is fatal for the operation that raised it: the scanner never
resynchronizes and never returns a partial tree. All errors derive from
ValueError so callers handling malformed input one way keep working.
"""

from __future__ import annotations


class SexpError(ValueError):
    """Base class for all decode/encode failures."""

    def __init__(
        self,
        message: str,
        position: int | None = None,
        expected: str | None = None,
        found: str | None = None,
    ) -> None:
        self.message = message
        self.position = position
        self.expected = expected
        self.found = found
        super().__init__(self._format())

    def _format(self) -> str:
        text = self.message
        if self.expected is not None and self.found is not None:
            text = f"{text}: expected {self.expected}, found {self.found}"
        elif self.found is not None:
            text = f"{text}: found {self.found}"
        if self.position is not None:
            text = f"{text} (at byte {self.position})"
        return text


# Invalid character for the alphabet in force (length prefix, hex, base64, escapes)
class LexicalError(SexpError): pass

# Mismatched or missing delimiter, bad declared length, nesting too deep
class StructuralError(SexpError): pass

# Non-zero or dangling bits at the end of a hexadecimal or base64 region
class PaddingError(SexpError): pass

# Underlying source/sink failure
class SexpIOError(SexpError): pass


class UnexpectedEOFError(StructuralError, SexpIOError):
    """Input ended while more of the object was still required."""
