"""
base32.py — Base32 (RFC 4648) codec for OTP secrets.

Authenticator secrets are usually pasted by hand or come out of a QR code, so
the decoder is forgiving: lowercase is accepted, ``=`` padding is optional and
lengths that are not a multiple of 8 still decode to whatever whole bytes the
bits produce.
"""

import base64

from .exceptions import DecodeError

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
_VALUES = {char: index for index, char in enumerate(ALPHABET)}


def decode(text: str) -> bytes:
    """
    Decode a Base32 secret into raw key bytes.

    Each symbol carries 5 bits. ``bits_remaining`` is the free capacity of the
    byte being assembled: while more than 5 bits are free the symbol is OR-ed
    in whole, otherwise its high bits close the current byte and its low bits
    start the next one.

    A trailing partial byte is kept only when it is non-zero, i.e. when the
    leftover bits were not just padding.

    Raises:
        DecodeError: a character outside A-Z / 2-7 (after uppercasing and
            stripping ``=``).
    """
    cleaned = text.upper().replace("=", "")
    out = bytearray()
    current = 0
    bits_remaining = 8
    for position, char in enumerate(cleaned):
        value = _VALUES.get(char)
        if value is None:
            raise DecodeError(char, position)
        if bits_remaining > 5:
            current |= value << (bits_remaining - 5)
            bits_remaining -= 5
        else:
            current |= value >> (5 - bits_remaining)
            out.append(current)
            current = (value << (3 + bits_remaining)) & 0xFF
            bits_remaining += 3

    if bits_remaining < 8 and current != 0:
        out.append(current)
    return bytes(out)


def encode(data: bytes) -> str:
    """Encode bytes as Base32 without ``=`` padding (the otpauth convention)."""
    return base64.b32encode(data).decode("ascii").rstrip("=")


def is_valid(text: str) -> bool:
    try:
        decode(text)
    except ValueError:
        return False
    return True
