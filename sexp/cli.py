"""
sexp CLI - Command-line interface for Rivest S-expressions.

Commands:
  sexp transcode   - Re-encode objects as canonical, base64 or advanced
  sexp inspect     - Show a structural summary of each object
  sexp validate    - Check that a file parses cleanly
  sexp fingerprint - SHA-256 of each object's canonical form
  sexp sign        - HMAC-SHA256 signature of an object's canonical form
  sexp verify      - Verify an HMAC-SHA256 signature
  sexp identify    - Quick check if a file looks like an S-expression
  sexp view        - Browse an object tree in the terminal
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from sexp.syntax import DEFAULT_LINE_LENGTH, PrintMode

logger = logging.getLogger(__name__)


def _fail(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def _line_width(args: argparse.Namespace) -> int:
    """Printer width: -w flag, then SEXP_LINE_WIDTH, then the default."""
    if getattr(args, "width", None) is not None:
        width = args.width
    else:
        raw = os.environ.get("SEXP_LINE_WIDTH", "")
        try:
            width = int(raw) if raw else DEFAULT_LINE_LENGTH
        except ValueError:
            _fail(f"SEXP_LINE_WIDTH must be an integer, got {raw!r}")
    if width < 0:
        _fail(f"Line width must be >= 0, got {width}")
    return width


def _secret(args: argparse.Namespace) -> str:
    secret = args.secret or os.environ.get("SEXP_SIGN_SECRET", "")
    if not secret:
        import getpass
        secret = getpass.getpass("Secret: ")
    if not secret:
        _fail("Secret cannot be empty")
    return secret


def _read_input(path: str) -> bytes:
    """Raw bytes of PATH, or of stdin when PATH is '-'."""
    from sexp.syntax import MAX_INPUT_SIZE

    if path == "-":
        data = sys.stdin.buffer.read()
    else:
        input_path = Path(path)
        if not input_path.is_file():
            _fail(f"File not found: {path}")
        file_size = input_path.stat().st_size
        if file_size > MAX_INPUT_SIZE:
            _fail(f"File size {file_size} exceeds maximum {MAX_INPUT_SIZE} bytes")
        data = input_path.read_bytes()
    logger.debug("Read %d bytes from %s", len(data), "stdin" if path == "-" else path)
    return data


def _load_all(path: str) -> list:
    from sexp.reader import SexpReader

    data = _read_input(path)
    try:
        return SexpReader.parse_all(data)
    except ValueError as e:
        _fail(f"parse error: {e}")


def _load_one(path: str):
    from sexp.reader import SexpReader

    data = _read_input(path)
    try:
        return SexpReader.parse(data)
    except ValueError as e:
        _fail(f"parse error: {e}")


def _summarize(obj) -> dict:
    """Counts and depth for one object tree."""
    from sexp.objects import SexpList

    stats = {"lists": 0, "strings": 0, "hinted": 0, "octets": 0, "depth": 0}
    stack = [(obj, 0)]
    while stack:
        node, depth = stack.pop()
        if isinstance(node, SexpList):
            stats["lists"] += 1
            stats["depth"] = max(stats["depth"], depth + 1)
            stack.extend((child, depth + 1) for child in node)
        else:
            stats["strings"] += 1
            stats["octets"] += len(node.data)
            if node.presentation_hint is not None:
                stats["hinted"] += 1
    return stats


def cmd_transcode(args: argparse.Namespace) -> None:
    """Print every object of a file in the requested encoding."""
    from sexp.writer import SexpWriter

    mode = PrintMode.from_name(args.mode)
    width = _line_width(args)
    objects = _load_all(args.path)

    chunks = []
    for obj in objects:
        chunks.append(SexpWriter.serialize(obj, mode, width))
        if mode != PrintMode.CANONICAL:
            chunks.append(b"\n")
    output = b"".join(chunks)

    if args.output:
        # Reject path traversal in output path
        if ".." in Path(args.output).parts:
            _fail("Output path must not contain '..' (path traversal)")
        Path(args.output).write_bytes(output)
        print(f"Transcoded {len(objects)} objects -> {args.output} ({len(output)} bytes)")
    else:
        sys.stdout.buffer.write(output)
        sys.stdout.buffer.flush()


def cmd_inspect(args: argparse.Namespace) -> None:
    """Inspect a file - structural summary of each object."""
    from sexp.objects import SexpList
    from sexp.security import canonical_bytes, fingerprint

    objects = _load_all(args.path)
    print(f"S-expressions: {args.path}")
    print(f"  objects: {len(objects)}")

    for i, obj in enumerate(objects, 1):
        stats = _summarize(obj)
        kind = "list" if isinstance(obj, SexpList) else "string"
        print()
        print(f"OBJECT {i}: {kind}")
        print(f"  lists:          {stats['lists']}")
        print(f"  strings:        {stats['strings']}")
        print(f"  hinted strings: {stats['hinted']}")
        print(f"  string octets:  {stats['octets']}")
        print(f"  max depth:      {stats['depth']}")
        print(f"  canonical size: {len(canonical_bytes(obj))}")
        print(f"  fingerprint:    {fingerprint(obj)}")


def cmd_validate(args: argparse.Namespace) -> None:
    """Validate that a file parses."""
    from sexp.reader import SexpReader

    path = args.path
    try:
        data = _read_input(path)
        objects = SexpReader.parse_all(data)
    except ValueError as e:
        # SexpError carries position and expected/found -- safe to show
        print(f"FAIL: parse error: {e}")
        sys.exit(1)

    if not objects:
        print(f"FAIL: {path} holds no S-expression")
        sys.exit(1)
    print(f"OK: {path} holds {len(objects)} valid S-expression(s)")


def cmd_fingerprint(args: argparse.Namespace) -> None:
    """SHA-256 of each object's canonical encoding."""
    from sexp.security import fingerprint

    for obj in _load_all(args.path):
        print(fingerprint(obj))


def cmd_sign(args: argparse.Namespace) -> None:
    """Sign an object with HMAC-SHA256."""
    from sexp.security import sign

    obj = _load_one(args.path)
    print(sign(obj, _secret(args)))


def cmd_verify(args: argparse.Namespace) -> None:
    """Verify the HMAC-SHA256 signature of an object."""
    from sexp.security import verify

    obj = _load_one(args.path)
    if verify(obj, _secret(args), args.signature):
        print(f"OK: {args.path} signature is valid")
    else:
        print(f"FAIL: {args.path} signature mismatch (tampered or wrong secret)")
        sys.exit(1)


def cmd_identify(args: argparse.Namespace) -> None:
    """Quick check if a file looks like an S-expression."""
    from sexp.reader import SexpReader

    if not Path(args.path).is_file():
        _fail(f"File not found: {args.path}")
    is_sexp = SexpReader.is_sexp(args.path)
    if is_sexp:
        print(f"{args.path}: S-expression")
    else:
        print(f"{args.path}: not an S-expression")
    sys.exit(0 if is_sexp else 1)


def cmd_view(args: argparse.Namespace) -> None:
    """Browse a file in the TUI viewer."""
    from sexp.tui.viewer import run_viewer

    run_viewer(args.path, max_column=_line_width(args))


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="sexp",
        description="sexp - Rivest S-expressions in canonical, base64 and advanced form.",
    )
    from sexp import __version__
    parser.add_argument("--version", action="version", version=f"sexp {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr")
    sub = parser.add_subparsers(dest="command")

    # transcode
    p_transcode = sub.add_parser("transcode", help="Re-encode objects in another print mode")
    p_transcode.add_argument("path", help="Input file ('-' for stdin)")
    p_transcode.add_argument(
        "-m", "--mode", choices=[m.name.lower() for m in PrintMode], default="advanced",
        help="Output encoding (default: advanced)",
    )
    p_transcode.add_argument("-w", "--width", type=int, help="Line width, 0 for unlimited (or set SEXP_LINE_WIDTH)")
    p_transcode.add_argument("-o", "--output", help="Output file path (default: stdout)")

    # inspect
    p_inspect = sub.add_parser("inspect", help="Summarize the objects in a file")
    p_inspect.add_argument("path", help="Input file ('-' for stdin)")

    # validate
    p_validate = sub.add_parser("validate", help="Check that a file parses")
    p_validate.add_argument("path", help="Input file ('-' for stdin)")

    # fingerprint
    p_fingerprint = sub.add_parser("fingerprint", help="SHA-256 of each canonical object")
    p_fingerprint.add_argument("path", help="Input file ('-' for stdin)")

    # sign
    p_sign = sub.add_parser("sign", help="HMAC-SHA256 signature of an object")
    p_sign.add_argument("path", help="Input file holding one object")
    p_sign.add_argument("-s", "--secret", help="Signing secret (or set SEXP_SIGN_SECRET, prompted if omitted)")

    # verify
    p_verify = sub.add_parser("verify", help="Verify an HMAC-SHA256 signature")
    p_verify.add_argument("path", help="Input file holding one object")
    p_verify.add_argument("signature", help="Hex signature from 'sexp sign'")
    p_verify.add_argument("-s", "--secret", help="Signing secret (or set SEXP_SIGN_SECRET, prompted if omitted)")

    # identify
    p_identify = sub.add_parser("identify", help="Quick check if a file is an S-expression")
    p_identify.add_argument("path", help="Path to file")

    # view
    p_view = sub.add_parser("view", help="Browse an object tree in the terminal")
    p_view.add_argument("path", help="Input file")
    p_view.add_argument("-w", "--width", type=int, help="Line width for the advanced preview")

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    if not args.command:
        print("sexp - Rivest S-expressions")
        print("Canonical, base64 and advanced encodings.\n")
        print("Usage:")
        print("  sexp transcode key.sexp -m canonical -o key.canon")
        print("  sexp transcode key.canon -m advanced -w 60")
        print("  sexp transcode key.sexp -m base64")
        print("  sexp inspect key.sexp")
        print("  sexp validate key.sexp")
        print("  sexp fingerprint key.sexp")
        print("  sexp sign key.sexp -s mysecret")
        print("  sexp verify key.sexp <signature> -s mysecret")
        print("  sexp identify key.sexp")
        print("  sexp view key.sexp")
        print()
        print("Pipe from stdin:")
        print("  echo '(3:abc)' | sexp transcode - -m advanced")
        print()
        print("Environment:")
        print("  SEXP_LINE_WIDTH    default line width for advanced and base64 output")
        print("  SEXP_SIGN_SECRET   secret for sign/verify when -s is omitted")
        print()
        print("Run 'sexp <command> --help' for details on any command.")
        print("Run 'sexp --version' for version info.")
        sys.exit(0)

    commands = {
        "transcode": cmd_transcode,
        "inspect": cmd_inspect,
        "validate": cmd_validate,
        "fingerprint": cmd_fingerprint,
        "sign": cmd_sign,
        "verify": cmd_verify,
        "identify": cmd_identify,
        "view": cmd_view,
    }

    commands[args.command](args)


if __name__ == "__main__":
    main()
