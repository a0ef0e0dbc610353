"""
exceptions.py — Error types for the authenticator core and credential store.

Generation errors subclass ValueError, the same way the OTP helpers have always
reported a bad secret (``raise ValueError("Invalid Base32 secret") from e``),
so callers that already catch ValueError keep working.
"""


class OTPError(ValueError):
    """Base class for failures while producing a code for one credential."""


class DecodeError(OTPError):
    """The Base32 secret contains a character outside A-Z / 2-7."""

    def __init__(self, char: str, position: int):
        super().__init__(f"Invalid Base32 character {char!r} at position {position}")
        self.char = char
        self.position = position


class EmptyKeyError(OTPError):
    """The decoded HMAC key is empty."""


class UnsupportedAlgorithmError(OTPError):
    """Hash algorithm is not one of SHA1, SHA256, SHA512."""

    def __init__(self, algorithm: str):
        super().__init__(f"Unsupported algorithm {algorithm!r}, must be SHA1, SHA256 or SHA512")
        self.algorithm = algorithm


class InvalidParameterError(OTPError):
    """digits, period or counter cannot produce a code."""


class ParseError(ValueError):
    """A provisioning URL was rejected."""

    def __init__(self, uri: str, message: str = "Invalid OTP Auth URL format"):
        super().__init__(message)
        self.uri = uri


class StoreError(Exception):
    """Base class for credential store failures."""


class PersistenceError(StoreError):
    """Reading or writing durable state failed.

    The in-memory change that triggered the write has already been applied;
    only its survival across a restart is at risk.
    """


class UnknownCredentialError(StoreError, LookupError):
    """The credential id is not present in the store."""

    def __init__(self, credential_id):
        super().__init__(f"Credential {credential_id} is not in the store")
        self.credential_id = credential_id


class DuplicateCredentialError(StoreError, ValueError):
    """A credential with the same id is already stored."""

    def __init__(self, credential_id):
        super().__init__(f"Credential {credential_id} is already in the store")
        self.credential_id = credential_id
