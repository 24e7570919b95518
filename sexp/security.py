"""
S-expression Security - Fingerprints and HMAC signatures over canonical bytes.

Security features:
  - Everything is computed over the canonical encoding, so an object read from
    canonical, base64 or advanced input fingerprints and verifies identically
  - HMAC-SHA256 signing with a shared secret
  - Constant-time signature comparison (no timing side-channels)
"""

from __future__ import annotations

import hashlib
import hmac

from sexp.objects import SexpObject
from sexp.syntax import PrintMode
from sexp.writer import SexpWriter

SIG_ALGO = "hmac-sha256"


def canonical_bytes(obj: SexpObject) -> bytes:
    """The unique canonical encoding of obj."""
    return SexpWriter.serialize(obj, PrintMode.CANONICAL)


def fingerprint(obj: SexpObject) -> str:
    """SHA-256 of the canonical encoding, as 64 hex characters."""
    return hashlib.sha256(canonical_bytes(obj)).hexdigest()


def sign(obj: SexpObject, secret: str | bytes) -> str:
    """
    Sign an object with HMAC-SHA256 over its canonical encoding.
    Returns the hex signature string.
    """
    if isinstance(secret, str):
        secret = secret.encode("utf-8")
    if not secret:
        raise ValueError("Signing secret must not be empty")
    return hmac.new(secret, canonical_bytes(obj), hashlib.sha256).hexdigest()


def verify(obj: SexpObject, secret: str | bytes, signature: str, *, require: bool = False) -> bool:
    """
    Verify an HMAC-SHA256 signature produced by sign().
    Returns True if valid, False if tampered or missing.

    If require=True, raises ValueError when no signature is given
    (distinguishes 'never signed' from 'signature mismatch').
    """
    if not signature:
        if require:
            raise ValueError("Object has no signature but signature is required")
        return False
    if isinstance(secret, str):
        secret = secret.encode("utf-8")
    if not secret:
        raise ValueError("Signing secret must not be empty")
    expected = hmac.new(secret, canonical_bytes(obj), hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature.lower(), expected)
