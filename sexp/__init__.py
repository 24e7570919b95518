"""
sexp - Rivest S-expressions.
Canonical, base64 and advanced encodings with a byte-exact canonical form.

Canonical form is what gets hashed and signed.
"""

__version__ = "0.1.0"
__format_version__ = "1.0"

from sexp.syntax import PrintMode, DEFAULT_LINE_LENGTH
from sexp.errors import (
    SexpError,
    LexicalError,
    StructuralError,
    PaddingError,
    SexpIOError,
    UnexpectedEOFError,
)
from sexp.objects import SimpleString, SexpObject, SexpString, SexpList, StringForm, from_python, to_python
from sexp.reader import InputStream, SexpReader, load, loads
from sexp.writer import OutputStream, SexpWriter, dump, dumps
from sexp.stream import SexpStreamWriter
