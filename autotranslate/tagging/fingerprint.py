"""
Content fingerprints.

A fingerprint is the first 10 base-62 digits of the SHA-256 digest of the raw
UTF-8 text. No whitespace or markup normalization happens first: changing a
single space yields a new fingerprint.
"""

import hashlib

ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
FINGERPRINT_LENGTH = 10


def _base62(number: int) -> str:
    digits = []
    while number:
        number, remainder = divmod(number, 62)
        digits.append(ALPHABET[remainder])
    return "".join(reversed(digits)) or ALPHABET[0]


def fingerprint(content: str) -> str:
    """Return the 10-character alphanumeric fingerprint of `content`."""
    digest = hashlib.sha256(content.encode("utf-8")).digest()
    encoded = _base62(int.from_bytes(digest, "big"))
    # 256 bits are 43 base-62 digits at most; pad for the rare short digest
    return encoded.rjust(FINGERPRINT_LENGTH, ALPHABET[0])[:FINGERPRINT_LENGTH]


def is_fingerprint(value: str) -> bool:
    """True if `value` has the shape of a fingerprint."""
    return (
        isinstance(value, str)
        and len(value) == FINGERPRINT_LENGTH
        and all(ch in ALPHABET for ch in value)
    )
