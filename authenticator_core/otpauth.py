"""
otpauth.py — Read and write ``otpauth://`` provisioning URLs.

The URL looks like this:

    otpauth://totp/Example:alice@example.com?secret=JBSWY3DPEHPK3PXP&issuer=Example
    ─────────┬───┬─┬───────────────────────┬──────────────────────────────────────
             │   │ │                       └── query: secret, issuer, algorithm, digits, period
             │   │ └── label, stored as the credential name
             │   └── OTP type (only totp is used here)
             └── scheme

Two tiers, on purpose:
- ``parse_otpauth_url`` is lenient. It only needs a query string with a
  ``secret``; scheme and type are not checked, bad ``digits`` / ``period``
  fall back to defaults and an unknown ``algorithm`` is kept as-is (code
  generation for that credential will then fail).
- ``is_valid_otpauth_url`` is strict and is what settings use before saving.
"""

import logging
import re
from typing import List, Optional, Tuple
from urllib.parse import quote, unquote, urlencode, urlsplit, SplitResult

from .credential import PLACEHOLDER_NAME, Credential
from .exceptions import ParseError
from .otp_core import DEFAULT_ALGORITHM, DEFAULT_DIGITS, DEFAULT_PERIOD, HashAlgorithm

logger = logging.getLogger(__name__)

TOTP_PREFIX = "otpauth://totp/"
_INTEGER = re.compile(r"[+-]?[0-9]+\Z")
_WHITESPACE = re.compile(r"\s")

QueryItems = List[Tuple[str, Optional[str]]]


def _split(uri: str) -> Optional[SplitResult]:
    # A URL with blanks or control characters inside is not a URL
    if not isinstance(uri, str) or _WHITESPACE.search(uri.strip()):
        return None
    try:
        return urlsplit(uri.strip())
    except ValueError:
        return None


def _query_items(query: str) -> QueryItems:
    """
    Split a query string into (name, value) pairs, percent-decoded.

    ``secret`` without ``=`` has no value (None); ``secret=`` has an empty one.
    """
    items = []
    for part in query.split("&"):
        if not part:
            continue
        name, sep, value = part.partition("=")
        items.append((unquote(name), unquote(value) if sep else None))
    return items


def _first(items: QueryItems, name: str) -> Optional[str]:
    """Value of the first parameter called ``name`` (case-insensitive)."""
    for key, value in items:
        if key.lower() == name:
            return value
    return None


def _int_param(items: QueryItems, name: str, default: int, diagnostics: List[str]) -> int:
    raw = _first(items, name)
    if raw is None:
        return default
    if not _INTEGER.match(raw):
        diagnostics.append(f"{name} {raw!r} is not a number, using {default}")
        return default
    return int(raw)


def parse_otpauth_url(uri: str, diagnostics: Optional[List[str]] = None) -> Optional[Credential]:
    """
    Parse a provisioning URL into a new Credential.

    Returns None (not an error) when the text is not a URL, has no query
    string or carries no ``secret`` parameter. Parameter names are matched
    case-insensitively and the first occurrence wins.

    Arguments:
        uri: the provisioning URL, e.g. scanned from a QR code
        diagnostics: optional list that receives a human readable note for
            every value that was replaced by a default or looks unusable.
            The notes are informational only; they are also logged as
            warnings.
    """
    notes: List[str] = []
    parts = _split(uri)
    if parts is None or not parts.query:
        return None

    items = _query_items(parts.query)
    secret = _first(items, "secret")
    if secret is None:
        return None

    path = unquote(parts.path)
    name = path[1:] if path.startswith("/") else path

    issuer = _first(items, "issuer") or ""
    algorithm = (_first(items, "algorithm") or DEFAULT_ALGORITHM).upper()
    if algorithm not in HashAlgorithm.__members__:
        notes.append(f"algorithm {algorithm!r} is not supported, codes cannot be generated")
    digits = _int_param(items, "digits", DEFAULT_DIGITS, notes)
    if not 6 <= digits <= 10:
        notes.append(f"digits {digits} is outside 6-10")
    period = _int_param(items, "period", DEFAULT_PERIOD, notes)
    if period <= 0:
        notes.append(f"period {period} must be greater than 0")

    for note in notes:
        logger.warning("otpauth URL: %s", note)
    if diagnostics is not None:
        diagnostics.extend(notes)

    return Credential(
        name=name,
        issuer=issuer,
        secret=secret,
        algorithm=algorithm,
        digits=digits,
        period=period,
    )


def require_otpauth_url(uri: str, diagnostics: Optional[List[str]] = None) -> Credential:
    """Like :func:`parse_otpauth_url` but raises ParseError instead of returning None."""
    credential = parse_otpauth_url(uri, diagnostics)
    if credential is None:
        raise ParseError(uri)
    return credential


def is_valid_otpauth_url(uri: str) -> bool:
    """Strict check used before saving: ``otpauth://totp/`` prefix plus a secret value."""
    if not isinstance(uri, str) or not uri.startswith(TOTP_PREFIX):
        return False
    parts = _split(uri)
    if parts is None or not parts.query:
        return False
    return any(key.lower() == "secret" and value is not None for key, value in _query_items(parts.query))


def service_name(uri: str) -> str:
    """Label part of the URL, or the placeholder when there is none."""
    parts = _split(uri)
    if parts is None:
        return PLACEHOLDER_NAME
    path = unquote(parts.path)
    if path.startswith("/") and len(path) > 1:
        return path[1:]
    return PLACEHOLDER_NAME


def format_otpauth_uri(credential: Credential) -> str:
    """
    Build the TOTP provisioning URL for ``credential``.

    - otpauth://totp/{name}?secret=...&issuer=...&algorithm=...&digits=...&period=...

    The base password never leaves the device, so it is not exported.
    Parsing the result gives back the same name, issuer, secret, algorithm,
    digits and period.
    """
    url_args = {"secret": credential.secret}
    if credential.issuer:
        url_args["issuer"] = credential.issuer
    url_args["algorithm"] = credential.algorithm.upper()
    url_args["digits"] = str(credential.digits)
    url_args["period"] = str(credential.period)

    label = quote(credential.name, safe="@:")
    return f"{TOTP_PREFIX}{label}?{urlencode(url_args, quote_via=quote)}"
