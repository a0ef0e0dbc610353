#!/usr/bin/env python3
"""
otp_core.py — Core library for HOTP / TOTP code generation.

Goals:
- Pure functions only, no I/O: the credential store and the CLI call in here
  with a key, a counter or a timestamp and get a code back.
- HMAC-SHA1 by default (RFC 4226 / RFC 6238, what Google Authenticator
  provisions), SHA256 and SHA512 on request.

Nothing here keeps state, so every function is safe to call concurrently for
different credentials.
"""

import datetime
import enum
import hashlib
import hmac
import logging
import math
import struct
import time
from typing import Callable, Tuple, Union

from . import base32
from .exceptions import EmptyKeyError, InvalidParameterError, UnsupportedAlgorithmError

logger = logging.getLogger(__name__)

# --- Config / constants ----------------------------------------------------
DEFAULT_DIGITS = 6          # standard: 6 digits
DEFAULT_PERIOD = 30         # TOTP step (seconds)
DEFAULT_ALGORITHM = "SHA1"
MAX_COUNTER = 2 ** 64       # counter travels as 8 bytes
MAX_DIGITS = 20             # the truncated value has at most 10 digits, the rest is padding

Timestamp = Union[int, float, datetime.datetime, None]


class HashAlgorithm(enum.Enum):
    """HMAC hash functions allowed by the otpauth format."""

    SHA1 = "SHA1"
    SHA256 = "SHA256"
    SHA512 = "SHA512"

    @property
    def digestmod(self) -> Callable:
        return _DIGESTS[self]

    @classmethod
    def from_name(cls, name: Union[str, "HashAlgorithm"]) -> "HashAlgorithm":
        """Look up an algorithm by name, case-insensitively ("sha256" -> SHA256)."""
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).strip().upper())
        except ValueError:
            raise UnsupportedAlgorithmError(str(name)) from None


_DIGESTS = {
    HashAlgorithm.SHA1: hashlib.sha1,
    HashAlgorithm.SHA256: hashlib.sha256,
    HashAlgorithm.SHA512: hashlib.sha512,
}


# --- RFC helpers -----------------------------------------------------------
def int_to_bytes(i: int) -> bytes:
    """
    Convert the counter into the 8-byte big-endian message RFC 4226 requires.

    Example: int_to_bytes(1) -> b'\\x00\\x00\\x00\\x00\\x00\\x00\\x00\\x01'

    Raises:
        InvalidParameterError: counter is negative or does not fit in 64 bits
    """
    if not 0 <= i < MAX_COUNTER:
        raise InvalidParameterError(f"counter must be in [0, 2**64), got {i}")
    return struct.pack(">Q", i)


def dynamic_truncate(hmac_digest: bytes) -> int:
    """
    Dynamic truncation from RFC 4226.

    - offset = last_byte & 0x0F
    - read 4 bytes from offset as a big-endian integer
    - clear the sign bit, leaving a 31-bit unsigned value

    Every supported digest is at least 20 bytes, so offset + 3 never runs off
    the end.
    """
    offset = hmac_digest[-1] & 0x0F
    (value,) = struct.unpack_from(">I", hmac_digest, offset)
    return value & 0x7FFFFFFF


def hotp(
    key: bytes,
    counter: int,
    digits: int = DEFAULT_DIGITS,
    algorithm: Union[str, HashAlgorithm] = DEFAULT_ALGORITHM,
) -> str:
    """
    Generate an HOTP code (RFC 4226).

    Steps:
    1. Message = 8-byte counter (big-endian)
    2. HMAC(algorithm, key, message)
    3. Dynamic truncate -> 31-bit integer
    4. otp = value % 10^digits
    5. Zero-pad to exactly ``digits`` characters

    Arguments:
        key: raw key bytes (already Base32-decoded)
        counter: non-negative counter
        digits: code length; 6-10 is the useful range, up to MAX_DIGITS only pads
        algorithm: "SHA1", "SHA256", "SHA512" or a HashAlgorithm

    Raises:
        EmptyKeyError: key is empty (an HMAC over no key material is rejected)
        InvalidParameterError: digits outside 1-MAX_DIGITS or counter out of range
        UnsupportedAlgorithmError: unknown algorithm name
    """
    if not key:
        raise EmptyKeyError("HMAC key must not be empty")
    if not 1 <= digits <= MAX_DIGITS:
        raise InvalidParameterError(f"digits must be between 1 and {MAX_DIGITS}, got {digits}")
    algo = HashAlgorithm.from_name(algorithm)

    msg = int_to_bytes(counter)
    digest = hmac.new(key, msg, algo.digestmod).digest()
    dbc = dynamic_truncate(digest)
    code = str(dbc % (10 ** digits)).zfill(digits)
    logger.debug("HOTP: HMAC-%s(counter=%d) -> dbc=%d", algo.value, counter, dbc)
    return code


# --- Time helpers ----------------------------------------------------------
def unix_seconds(timestamp: Timestamp = None) -> int:
    """
    Whole Unix seconds for ``timestamp``.

    Accepts epoch seconds (int/float), a datetime (naive values are taken as
    UTC) or None for "now".
    """
    if timestamp is None:
        timestamp = time.time()
    elif isinstance(timestamp, datetime.datetime):
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=datetime.timezone.utc)
        timestamp = timestamp.timestamp()
    return math.floor(timestamp)


def _check_period(period: int) -> None:
    if period <= 0:
        raise InvalidParameterError(f"period must be greater than 0, got {period}")


def timecode(timestamp: Timestamp = None, period: int = DEFAULT_PERIOD) -> int:
    """TOTP counter: floor(unix_seconds / period)."""
    _check_period(period)
    return unix_seconds(timestamp) // period


def seconds_remaining(timestamp: Timestamp = None, period: int = DEFAULT_PERIOD) -> int:
    """
    Seconds left in the current window, always in [1, period].

    Exactly on a window boundary the full period is returned, never 0.
    """
    _check_period(period)
    return period - (unix_seconds(timestamp) % period)


def totp(
    key: bytes,
    timestamp: Timestamp = None,
    period: int = DEFAULT_PERIOD,
    digits: int = DEFAULT_DIGITS,
    algorithm: Union[str, HashAlgorithm] = DEFAULT_ALGORITHM,
) -> str:
    """
    Generate a TOTP code (RFC 6238): HOTP with counter = floor(time / period).

    Arguments:
        key: raw key bytes
        timestamp: epoch seconds or datetime; None -> time.time()
        period: time step X in seconds, default 30
        digits: code length
        algorithm: hash algorithm name

    The result depends only on the counter, so two timestamps in the same
    window always give the same code.
    """
    counter = timecode(timestamp, period)
    return hotp(key, counter, digits, algorithm)


def totp_for_secret(
    secret_b32: str,
    timestamp: Timestamp = None,
    period: int = DEFAULT_PERIOD,
    digits: int = DEFAULT_DIGITS,
    algorithm: Union[str, HashAlgorithm] = DEFAULT_ALGORITHM,
) -> Tuple[str, int]:
    """
    Decode a Base32 secret and return (code, remaining_seconds).

    Raises:
        DecodeError: secret is not valid Base32
    """
    seconds = unix_seconds(timestamp)
    key = base32.decode(secret_b32)
    code = totp(key, seconds, period, digits, algorithm)
    remaining = seconds_remaining(seconds, period)
    logger.debug("TOTP: time=%d, period=%d, remaining=%ds", seconds, period, remaining)
    return code, remaining

