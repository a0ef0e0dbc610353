#!/usr/bin/env python3
"""
otp_cli.py — Command line front end for the credential store.

Subcommands:
- list     : current code of every credential
- watch    : refresh the codes every second
- add-url  : add a credential from an otpauth:// URL
- add      : add a credential by hand
- update   : change fields of a credential
- delete   : remove a credential
- select   : make a credential the selected one
- copy     : print the copy payload (base password + code)
- uri      : print the otpauth:// URL of a credential (optionally as QR code)
- settings : show / save the base string and default otpauth URL, or add
             the credential it describes

IDs can be given as a full UUID or any unique prefix of it.
"""

import argparse
import logging
import sys
import time

import pyotp
import qrcode

from authenticator_db.kv_backend import open_backend
from authenticator_db.setup_database import DATABASE_FILE
from authenticator_db.settings import Settings
from authenticator_db.store import CredentialStore

from . import base32
from .credential import Credential
from .exceptions import ParseError, PersistenceError, StoreError
from .otp_core import DEFAULT_ALGORITHM, DEFAULT_DIGITS, DEFAULT_PERIOD
from .otpauth import format_otpauth_uri, parse_otpauth_url, service_name

logger = logging.getLogger(__name__)

PLACEHOLDER_CODE = "------"


def error(msg: str) -> int:
    print(f"[!] {msg}", file=sys.stderr)
    return 1


def unsaved(e: PersistenceError) -> int:
    return error(f"{e} (the change was not saved)")


def warn_secret(secret: str) -> None:
    if not base32.is_valid(secret):
        print("[*] Secret is not valid Base32, no codes can be generated for it")


def open_store(args) -> CredentialStore:
    logger.debug("Opening credential store at %s", args.db)
    return CredentialStore(open_backend(args.db))


def resolve(store: CredentialStore, ident: str) -> Credential | None:
    """Credential for a UUID or unique UUID prefix; prints why when there is none."""
    matches = store.find(ident)
    if len(matches) == 1:
        return matches[0]
    if not matches:
        error(f"No credential with id '{ident}'")
    else:
        error(f"Id '{ident}' is ambiguous ({len(matches)} matches)")
    return None


def print_codes(store: CredentialStore, now=None) -> None:
    if not len(store):
        print("No credentials. Use `add` or `add-url` to create one.")
        return
    selected_id = store.selected_id
    for snap in store.refresh(now):
        cred = snap.credential
        marker = "*" if cred.id == selected_id else " "
        if snap.ok:
            print(f"{marker} {str(cred.id)[:8]}  {snap.code:>10}  ({snap.seconds_remaining:2d}s)  {cred.display_name}")
        else:
            print(f"{marker} {str(cred.id)[:8]}  {PLACEHOLDER_CODE:>10}  (   )  {cred.display_name}  [{snap.error}]")


# --- CLI command handlers ---
def cmd_list(args) -> int:
    print_codes(open_store(args))
    return 0


def cmd_watch(args) -> int:
    store = open_store(args)
    print("Press Ctrl+C to quit. Refreshing codes every second...\n")
    ticks = 0
    try:
        while True:
            print_codes(store)
            ticks += 1
            if args.count and ticks >= args.count:
                break
            print()
            time.sleep(1)
    except KeyboardInterrupt:
        print("\nBye.")
    return 0


def cmd_add_url(args) -> int:
    diagnostics = []
    credential = parse_otpauth_url(args.url, diagnostics)
    if credential is None:
        return error("Invalid OTP Auth URL format. Please check the URL and try again.")
    for note in diagnostics:
        print(f"[*] {note}")
    if not credential.name:
        credential = credential.with_changes(name=service_name(args.url))
    if args.base_password:
        credential = credential.with_changes(base_password=args.base_password, use_base_password=True)

    store = open_store(args)
    try:
        store.add(credential)
    except PersistenceError as e:
        return unsaved(e)
    print(f"[+] Added {credential.display_name} ({credential.id})")
    return 0


def cmd_add(args) -> int:
    secret = pyotp.random_base32() if args.generate_secret else (args.secret or "")
    if not args.name or not secret:
        return error("Name and secret are required")

    use_base_password = args.use_base_password
    if use_base_password is None:
        use_base_password = bool(args.base_password)
    credential = Credential(
        name=args.name,
        issuer=args.issuer,
        secret=secret,
        algorithm=args.algorithm.upper(),
        digits=args.digits,
        period=args.period,
        base_password=args.base_password,
        use_base_password=use_base_password,
    )
    warn_secret(secret)
    store = open_store(args)
    try:
        store.add(credential)
    except PersistenceError as e:
        return unsaved(e)
    print(f"[+] Added {credential.display_name} ({credential.id})")
    if args.generate_secret:
        print(f"    Secret: {secret}")
    return 0


def cmd_update(args) -> int:
    store = open_store(args)
    credential = resolve(store, args.id)
    if credential is None:
        return 1

    changes = {}
    for field in ("name", "issuer", "secret", "digits", "period", "base_password", "use_base_password"):
        value = getattr(args, field)
        if value is not None:
            changes[field] = value
    if args.algorithm is not None:
        changes["algorithm"] = args.algorithm.upper()
    if not changes:
        return error("Nothing to update")

    if "secret" in changes:
        warn_secret(changes["secret"])
    try:
        store.update(credential.with_changes(**changes))
    except PersistenceError as e:
        return unsaved(e)
    print(f"[+] Updated {credential.id}")
    return 0


def cmd_delete(args) -> int:
    store = open_store(args)
    credential = resolve(store, args.id)
    if credential is None:
        return 1
    try:
        store.delete(credential)
    except PersistenceError as e:
        return unsaved(e)
    print(f"[+] Deleted {credential.display_name}")
    selected = store.selected
    if selected is not None:
        print(f"    Selected: {selected.display_name}")
    return 0


def cmd_select(args) -> int:
    store = open_store(args)
    credential = resolve(store, args.id)
    if credential is None:
        return 1
    try:
        store.select(credential)
    except PersistenceError as e:
        return unsaved(e)
    print(f"[+] Selected {credential.display_name}")
    return 0


def cmd_copy(args) -> int:
    store = open_store(args)
    if args.id:
        credential = resolve(store, args.id)
        if credential is None:
            return 1
    else:
        credential = store.selected
        if credential is None:
            return error("No credential selected")

    code, _ = credential.generate()
    print(credential.copy_payload(code))
    return 0


def cmd_uri(args) -> int:
    store = open_store(args)
    credential = resolve(store, args.id)
    if credential is None:
        return 1

    uri = format_otpauth_uri(credential)
    print(uri)
    if args.qr:
        qr = qrcode.QRCode(border=2)
        qr.add_data(uri)
        qr.make(fit=True)
        qr.print_ascii(out=sys.stdout, invert=True)
    return 0


def cmd_settings_show(args) -> int:
    settings = Settings(open_backend(args.db))
    print(f"Base string : {settings.base_string}")
    print(f"otpauth URL : {settings.otp_auth_url}")
    return 0


def cmd_settings_set(args) -> int:
    settings = Settings(open_backend(args.db))
    base_string = args.base_string if args.base_string is not None else settings.base_string
    otp_auth_url = args.otp_auth_url if args.otp_auth_url is not None else settings.otp_auth_url
    try:
        settings.save(base_string, otp_auth_url)
    except PersistenceError as e:
        return unsaved(e)
    print("[+] Settings saved")
    return 0


def cmd_settings_add(args) -> int:
    """Add the credential of the saved otpauth URL, prefixed with the base string."""
    backend = open_backend(args.db)
    settings = Settings(backend)
    credential = settings.default_credential()
    if credential is None:
        return error("No usable otpauth URL in settings. Use `settings set --otp-auth-url` first.")
    if not credential.name:
        credential = credential.with_changes(name=service_name(settings.otp_auth_url))
    if settings.base_string:
        credential = credential.with_changes(base_password=settings.base_string, use_base_password=True)

    store = CredentialStore(backend)
    try:
        store.add(credential)
    except PersistenceError as e:
        return unsaved(e)
    print(f"[+] Added {credential.display_name} ({credential.id})")
    return 0


def cmd_help(args) -> int:
    print("No command specified. Use -h for help.")
    return 0


# --- Argparse builder ---
def _credential_fields(p: argparse.ArgumentParser, defaults: bool) -> None:
    def d(value):
        return value if defaults else None

    p.add_argument("--issuer", default=d(""), help="Issuer shown next to the name")
    p.add_argument("--algorithm", default=d(DEFAULT_ALGORITHM), help="SHA1, SHA256 or SHA512")
    p.add_argument("--digits", type=int, default=d(DEFAULT_DIGITS), help="Number of code digits")
    p.add_argument("--period", type=int, default=d(DEFAULT_PERIOD), help="TOTP time step (seconds)")
    p.add_argument("--base-password", default=d(""), help="Static prefix for the copy payload")
    p.add_argument("--use-base-password", action=argparse.BooleanOptionalAction, default=None,
                   help="Prefix the copied code with the base password")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Multi-account TOTP authenticator")
    p.add_argument("--db", default=DATABASE_FILE,
                   help="Storage file (.db/.sqlite for sqlite, anything else for JSON)")
    p.add_argument("--verbose", action="store_true", help="Verbose output")
    sub = p.add_subparsers(dest="cmd")
    p.set_defaults(func=cmd_help)

    pl = sub.add_parser("list", help="Show the current code of every credential")
    pl.set_defaults(func=cmd_list)

    pw = sub.add_parser("watch", help="Refresh codes every second")
    pw.add_argument("--count", type=int, default=0, help="Stop after N refreshes (0 = run until Ctrl+C)")
    pw.set_defaults(func=cmd_watch)

    pu = sub.add_parser("add-url", help="Add a credential from an otpauth:// URL")
    pu.add_argument("url")
    pu.add_argument("--base-password", default="", help="Static prefix for the copy payload")
    pu.set_defaults(func=cmd_add_url)

    pa = sub.add_parser("add", help="Add a credential by hand")
    pa.add_argument("--name", required=True, help="Account name")
    pa.add_argument("--secret", help="Base32 secret")
    pa.add_argument("--generate-secret", action="store_true", help="Generate a random Base32 secret")
    _credential_fields(pa, defaults=True)
    pa.set_defaults(func=cmd_add)

    pe = sub.add_parser("update", help="Change fields of a credential")
    pe.add_argument("id")
    pe.add_argument("--name")
    pe.add_argument("--secret")
    _credential_fields(pe, defaults=False)
    pe.set_defaults(func=cmd_update)

    pd = sub.add_parser("delete", help="Remove a credential")
    pd.add_argument("id")
    pd.set_defaults(func=cmd_delete)

    ps = sub.add_parser("select", help="Select a credential")
    ps.add_argument("id")
    ps.set_defaults(func=cmd_select)

    pc = sub.add_parser("copy", help="Print the copy payload of a credential (default: selected)")
    pc.add_argument("id", nargs="?")
    pc.set_defaults(func=cmd_copy)

    pq = sub.add_parser("uri", help="Print the otpauth:// URL of a credential")
    pq.add_argument("id")
    pq.add_argument("--qr", action="store_true", help="Also render it as a QR code")
    pq.set_defaults(func=cmd_uri)

    pt = sub.add_parser("settings", help="Show or change settings")
    sub_t = pt.add_subparsers(dest="settings_cmd")
    pt.set_defaults(func=cmd_settings_show)

    pts = sub_t.add_parser("show", help="Show settings")
    pts.set_defaults(func=cmd_settings_show)

    ptw = sub_t.add_parser("set", help="Save settings")
    ptw.add_argument("--base-string")
    ptw.add_argument("--otp-auth-url")
    ptw.set_defaults(func=cmd_settings_set)

    pta = sub_t.add_parser("add", help="Add the credential of the saved otpauth URL")
    pta.set_defaults(func=cmd_settings_add)

    return p


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(levelname)s] %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except ParseError as e:
        return error(f"{e}: {e.uri}")
    except StoreError as e:
        return error(str(e))
    except ValueError as e:
        return error(str(e))


if __name__ == "__main__":
    sys.exit(main())
