import pytest

from authenticator_core.credential import Credential
from authenticator_db.kv_backend import MemoryKeyValueStore
from authenticator_db.store import CredentialStore

VALID_SECRET = "JBSWY3DPEHPK3PXP"


@pytest.fixture
def backend():
    return MemoryKeyValueStore()


@pytest.fixture
def store(backend):
    return CredentialStore(backend)


@pytest.fixture
def make_credential():
    """Factory for credentials with a working secret."""

    def _make(name="alice@example.com", **kwargs):
        kwargs.setdefault("secret", VALID_SECRET)
        return Credential(name=name, **kwargs)

    return _make
