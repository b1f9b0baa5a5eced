"""
PDF signature check.

Origins often answer a document URL with an HTML login or error page and a
200 status; the leading signature is the cheap way to tell them apart.
"""

from .errors import VerificationFailure

PDF_SIGNATURE = b'%PDF'


def is_well_formed(buffer: bytes) -> bool:
    """Check that the buffer starts with the PDF signature."""
    if not buffer:
        return False
    return bytes(buffer[:len(PDF_SIGNATURE)]) == PDF_SIGNATURE


def verify_pdf(buffer: bytes) -> bytes:
    """Return the buffer unchanged, or raise VerificationFailure."""
    if is_well_formed(buffer):
        return buffer

    size = len(buffer) if buffer else 0
    head = bytes(buffer[:16]) if buffer else b''
    raise VerificationFailure(f"Response is not a valid PDF ({size} bytes, starts with {head!r})")
