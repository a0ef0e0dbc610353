"""Credential record: the OTP parameters of one account."""

import dataclasses
import uuid
from typing import Any, Dict, Mapping, Tuple

from .otp_core import (
    DEFAULT_ALGORITHM,
    DEFAULT_DIGITS,
    DEFAULT_PERIOD,
    Timestamp,
    totp_for_secret,
    unix_seconds,
)

PLACEHOLDER_NAME = "Unknown Service"


@dataclasses.dataclass(frozen=True)
class Credential:
    """
    One stored account.

    Instances are immutable; the store replaces a record instead of editing it,
    so a Credential handed out by the store never changes under the caller.
    Use ``dataclasses.replace`` (or :meth:`with_changes`) to derive an edited
    copy that keeps the same ``id``.
    """

    name: str
    secret: str
    issuer: str = ""
    algorithm: str = DEFAULT_ALGORITHM
    digits: int = DEFAULT_DIGITS
    period: int = DEFAULT_PERIOD
    base_password: str = ""
    use_base_password: bool = False
    id: uuid.UUID = dataclasses.field(default_factory=uuid.uuid4)

    @property
    def display_name(self) -> str:
        if self.issuer:
            return f"{self.issuer} ({self.name})"
        return self.name

    def with_changes(self, **changes: Any) -> "Credential":
        if "id" in changes:
            raise TypeError("id is immutable")
        return dataclasses.replace(self, **changes)

    def generate(self, now: Timestamp = None) -> Tuple[str, int]:
        """
        Current code and seconds remaining in its window.

        Raises:
            OTPError: the secret, algorithm, digits or period cannot produce a
                code (DecodeError for a bad secret).
        """
        return totp_for_secret(
            self.secret,
            timestamp=unix_seconds(now),
            period=self.period,
            digits=self.digits,
            algorithm=self.algorithm,
        )

    def copy_payload(self, code: str) -> str:
        """Text to place on the clipboard: base password + code when enabled."""
        if self.use_base_password and self.base_password:
            return f"{self.base_password}{code}"
        return code

    # --- Serialization -----------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "name": self.name,
            "issuer": self.issuer,
            "secret": self.secret,
            "algorithm": self.algorithm,
            "digits": self.digits,
            "period": self.period,
            "basePassword": self.base_password,
            "useBasePassword": self.use_base_password,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Credential":
        """
        Rebuild a record from :meth:`to_dict` output.

        ``id``, ``name`` and ``secret`` are required (KeyError / ValueError when
        missing or malformed); every other field falls back to its default.
        ``useBasePassword`` is on only for a JSON ``true``.
        """
        return cls(
            id=uuid.UUID(str(data["id"])),
            name=str(data["name"]),
            secret=str(data["secret"]),
            issuer=str(data.get("issuer") or ""),
            algorithm=str(data.get("algorithm") or DEFAULT_ALGORITHM),
            digits=int(data.get("digits", DEFAULT_DIGITS)),
            period=int(data.get("period", DEFAULT_PERIOD)),
            base_password=str(data.get("basePassword") or ""),
            use_base_password=data.get("useBasePassword") is True,
        )
