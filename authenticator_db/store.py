"""
store.py — The credential collection and its "currently selected" pointer.

Flow:
    CLI / UI  ->  CredentialStore.add / update / delete / select  ->  KeyValueStore
    timer     ->  CredentialStore.refresh(now)  ->  [CodeSnapshot, ...]

Every mutation is applied in memory, written to the backend, then announced to
the subscribers. If the write fails the in-memory change is kept and
PersistenceError is raised so the caller can warn that it may not survive a
restart.
"""

import dataclasses
import json
import logging
import threading
import uuid
from typing import Callable, Iterator, List, Optional, Tuple

from authenticator_core.credential import Credential
from authenticator_core.exceptions import (
    DuplicateCredentialError,
    OTPError,
    PersistenceError,
    UnknownCredentialError,
)
from authenticator_core.otp_core import Timestamp, unix_seconds

from .kv_backend import KeyValueStore

logger = logging.getLogger(__name__)

ACCOUNTS_KEY = "savedAccounts"
SELECTED_ACCOUNT_KEY = "selectedAccountId"

Listener = Callable[[str, Credential], None]


@dataclasses.dataclass(frozen=True)
class CodeSnapshot:
    """Result of one refresh for one credential."""

    credential: Credential
    code: Optional[str]
    seconds_remaining: Optional[int]
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.code is not None

    def copy_payload(self) -> Optional[str]:
        if self.code is None:
            return None
        return self.credential.copy_payload(self.code)


class CredentialStore:
    """
    Ordered credentials plus the selected id, persisted through a KeyValueStore.

    Invariant: ``selected_id`` is None when the store is empty and otherwise
    names a stored credential. The only way to break it is persisted data that
    already pointed at a missing id; ``selected`` then returns None.
    """

    def __init__(self, backend: KeyValueStore):
        self._backend = backend
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []
        self._credentials: Tuple[Credential, ...] = self._load_accounts()
        self._selected_id: Optional[uuid.UUID] = self._load_selected_account()

    # --- Loading -----------------------------------------------------------
    def _load_accounts(self) -> Tuple[Credential, ...]:
        raw = self._backend.get(ACCOUNTS_KEY)
        if raw is None:
            return ()
        try:
            records = json.loads(raw.decode("utf-8"))
        except ValueError as e:
            logger.error("Stored credentials are unreadable, starting empty: %s", e)
            return ()
        if not isinstance(records, list):
            logger.error("Stored credentials are not a list, starting empty")
            return ()

        credentials = []
        for index, record in enumerate(records):
            try:
                credentials.append(Credential.from_dict(record))
            except (ValueError, TypeError, KeyError, AttributeError) as e:
                # one damaged record only costs that record
                logger.error("Skipping unreadable stored credential #%d: %r", index, e)
        logger.debug("Loaded %d of %d credentials", len(credentials), len(records))
        return tuple(credentials)

    def _load_selected_account(self) -> Optional[uuid.UUID]:
        raw = self._backend.get(SELECTED_ACCOUNT_KEY)
        if raw is None:
            return None
        try:
            selected_id = uuid.UUID(raw.decode("utf-8"))
        except (ValueError, UnicodeDecodeError):
            logger.warning("Ignoring malformed selected id %r", raw)
            return None
        if selected_id not in {c.id for c in self._credentials}:
            logger.warning("Selected id %s does not match any stored credential", selected_id)
        return selected_id

    # --- Saving ------------------------------------------------------------
    def _save_accounts(self) -> None:
        payload = json.dumps([c.to_dict() for c in self._credentials])
        self._backend.set(ACCOUNTS_KEY, payload.encode("utf-8"))

    def _save_selected_account(self) -> None:
        if self._selected_id is not None:
            self._backend.set(SELECTED_ACCOUNT_KEY, str(self._selected_id).encode("utf-8"))
        else:
            self._backend.delete(SELECTED_ACCOUNT_KEY)

    def _persist(self, accounts: bool, selection: bool) -> Optional[PersistenceError]:
        """Write what changed; return the first failure instead of raising."""
        error = None
        for needed, save in ((accounts, self._save_accounts), (selection, self._save_selected_account)):
            if not needed:
                continue
            try:
                save()
            except PersistenceError as e:
                logger.error("Could not persist change: %s", e)
                error = error or e
        return error

    def _finish(self, event: str, credential: Credential, error: Optional[PersistenceError]) -> None:
        self._notify(event, credential)
        if error is not None:
            raise error

    # --- Change notification -----------------------------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Call ``listener(event, credential)`` after every change.

        ``event`` is one of "add", "update", "delete", "select". Returns a
        function that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: str, credential: Credential) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, credential)
            except Exception:
                logger.exception("Store listener failed on %s", event)

    # --- Queries -----------------------------------------------------------
    @property
    def credentials(self) -> Tuple[Credential, ...]:
        """Snapshot of the stored credentials in insertion order."""
        return self._credentials

    @property
    def selected_id(self) -> Optional[uuid.UUID]:
        return self._selected_id

    @property
    def selected(self) -> Optional[Credential]:
        if self._selected_id is None:
            return None
        return self.get(self._selected_id)

    def get(self, credential_id: uuid.UUID) -> Optional[Credential]:
        for credential in self._credentials:
            if credential.id == credential_id:
                return credential
        return None

    def find(self, prefix: str) -> List[Credential]:
        """Credentials whose id starts with ``prefix`` (a full id matches itself)."""
        prefix = prefix.strip().lower()
        return [c for c in self._credentials if str(c.id).startswith(prefix)]

    def __len__(self) -> int:
        return len(self._credentials)

    def __iter__(self) -> Iterator[Credential]:
        return iter(self._credentials)

    def __contains__(self, credential: object) -> bool:
        if isinstance(credential, Credential):
            return self.get(credential.id) is not None
        return False

    # --- Mutations ---------------------------------------------------------
    def add(self, credential: Credential) -> None:
        """Append ``credential``; the first credential in the store gets selected."""
        with self._lock:
            if self.get(credential.id) is not None:
                raise DuplicateCredentialError(credential.id)
            self._credentials = self._credentials + (credential,)
            first = len(self._credentials) == 1
            if first:
                self._selected_id = credential.id
            error = self._persist(accounts=True, selection=first)
        logger.info("Added credential %s (%s)", credential.id, credential.display_name)
        self._finish("add", credential, error)

    def update(self, credential: Credential) -> bool:
        """Replace the stored credential with the same id. Unknown ids are ignored."""
        with self._lock:
            if self.get(credential.id) is None:
                logger.debug("Update ignored, %s is not stored", credential.id)
                return False
            self._credentials = tuple(
                credential if c.id == credential.id else c for c in self._credentials
            )
            error = self._persist(accounts=True, selection=False)
        logger.info("Updated credential %s", credential.id)
        self._finish("update", credential, error)
        return True

    def delete(self, credential: Credential) -> bool:
        """
        Remove the credential with ``credential.id``.

        Deleting the selected credential moves the selection to the first one
        left, or clears it when the store is now empty.
        """
        with self._lock:
            remaining = tuple(c for c in self._credentials if c.id != credential.id)
            if len(remaining) == len(self._credentials):
                return False
            self._credentials = remaining
            reselect = self._selected_id == credential.id
            if reselect:
                self._selected_id = remaining[0].id if remaining else None
            error = self._persist(accounts=True, selection=reselect)
        logger.info("Deleted credential %s", credential.id)
        self._finish("delete", credential, error)
        return True

    def select(self, credential: Credential) -> None:
        """
        Make ``credential`` the selected one.

        Raises:
            UnknownCredentialError: the id is not in the store
        """
        with self._lock:
            stored = self.get(credential.id)
            if stored is None:
                raise UnknownCredentialError(credential.id)
            self._selected_id = stored.id
            error = self._persist(accounts=False, selection=True)
        logger.info("Selected credential %s", stored.id)
        self._finish("select", stored, error)

    # --- Codes -------------------------------------------------------------
    def refresh(self, now: Timestamp = None) -> List[CodeSnapshot]:
        """
        Current code for every credential, in store order.

        A credential whose secret or parameters cannot produce a code gets a
        snapshot with ``code=None`` and the error message; the others are not
        affected.
        """
        seconds = unix_seconds(now)
        snapshots = []
        for credential in self._credentials:
            try:
                code, remaining = credential.generate(seconds)
            except OTPError as e:
                logger.debug("No code for %s: %s", credential.id, e)
                snapshots.append(CodeSnapshot(credential, None, None, str(e)))
                continue
            snapshots.append(CodeSnapshot(credential, code, remaining))
        return snapshots
