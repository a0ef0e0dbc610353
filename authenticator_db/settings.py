"""Settings record: a base string and a default provisioning URL."""

import logging
from typing import Optional

from authenticator_core.credential import Credential
from authenticator_core.exceptions import ParseError
from authenticator_core.otpauth import is_valid_otpauth_url, parse_otpauth_url

from .kv_backend import KeyValueStore

logger = logging.getLogger(__name__)

BASE_STRING_KEY = "baseString"
OTP_AUTH_URL_KEY = "otpAuthURL"


class Settings:
    def __init__(self, backend: KeyValueStore):
        self._backend = backend

    def _read(self, key: str) -> str:
        raw = self._backend.get(key)
        return raw.decode("utf-8") if raw is not None else ""

    @property
    def base_string(self) -> str:
        return self._read(BASE_STRING_KEY)

    @property
    def otp_auth_url(self) -> str:
        return self._read(OTP_AUTH_URL_KEY)

    def save(self, base_string: str, otp_auth_url: str) -> None:
        """
        Store both values after checking the URL with the strict validator.

        Raises:
            ParseError: ``otp_auth_url`` is not an ``otpauth://totp/`` URL with
                a secret; nothing is written.
            PersistenceError: the backend write failed.
        """
        if not is_valid_otpauth_url(otp_auth_url):
            raise ParseError(otp_auth_url)
        self._backend.set(BASE_STRING_KEY, base_string.encode("utf-8"))
        self._backend.set(OTP_AUTH_URL_KEY, otp_auth_url.encode("utf-8"))
        logger.info("Settings saved")

    def default_credential(self) -> Optional[Credential]:
        """Credential described by the stored URL, None if there is none."""
        url = self.otp_auth_url
        if not url:
            return None
        return parse_otpauth_url(url)
