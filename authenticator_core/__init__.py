"""
authenticator_core package
==========================

TOTP generator for many accounts (RFC 4226 / RFC 6238), ``otpauth://`` URL
parsing and the Credential record the store persists.

──────────────────────────────────────────────
Core algorithms
──────────────────────────────────────────────
- Base32 (RFC 4648):
  secret text -> 5-bit symbols -> packed into bytes (padding optional).

- HOTP (HMAC-based One-Time Password):
  code = Truncate(HMAC(key=secret, msg=counter)) mod 10^digits

- TOTP (Time-based One-Time Password):
  HOTP with counter = floor(timestamp / period)
  → default period = 30 seconds, 6 digits, SHA-1.

- Dynamic Truncation:
  take 4 bytes of the HMAC at offset (last byte & 0x0F), drop the sign bit.

──────────────────────────────────────────────
Quick example
──────────────────────────────────────────────
>>> from authenticator_core import parse_otpauth_url
>>> cred = parse_otpauth_url("otpauth://totp/Example:alice@example.com?secret=JBSWY3DPEHPK3PXP&issuer=Example")
>>> cred.display_name
'Example (Example:alice@example.com)'
>>> code, remaining = cred.generate()
"""

from .base32 import decode as base32_decode, encode as base32_encode
from .credential import PLACEHOLDER_NAME, Credential
from .exceptions import (
    DecodeError,
    DuplicateCredentialError,
    EmptyKeyError,
    InvalidParameterError,
    OTPError,
    ParseError,
    PersistenceError,
    StoreError,
    UnknownCredentialError,
    UnsupportedAlgorithmError,
)
from .otp_core import (
    DEFAULT_ALGORITHM,
    DEFAULT_DIGITS,
    DEFAULT_PERIOD,
    HashAlgorithm,
    hotp,
    seconds_remaining,
    timecode,
    totp,
    totp_for_secret,
)
from .otpauth import (
    format_otpauth_uri,
    is_valid_otpauth_url,
    parse_otpauth_url,
    require_otpauth_url,
    service_name,
)
