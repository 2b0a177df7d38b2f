import argparse
import json
from pathlib import Path
from typing import Optional

from . import __version__
from .database import init_database
from .env import load_env, load_settings
from .errors import ContactLinkError, ContactNotFoundError, StoreError, ValidationError
from .integrity import check_graph
from .logger import get_logger
from .resolver import CREATED, LINKED, MERGED, UNCHANGED, ConsolidatedContact, IdentityResolver
from .retry import RetryError, exponential_backoff, is_transient_error
from .schema import parse_identify_request
from .storage import ContactRepository, ContactStore


def identify_with_retry(
    resolver: IdentityResolver,
    email: Optional[str],
    phone_number: Optional[str],
    max_retries: int = 3,
    base_delay: float = 0.2,
) -> ConsolidatedContact:
    """Run identify, repeating the whole call on transient store failures."""
    logger = resolver.logger

    def on_retry(attempt, exc, delay):
        logger.warning("Retrying identify after store failure", attempt=attempt, delay=delay, error=str(exc))

    @exponential_backoff(
        max_retries=max_retries,
        base_delay=base_delay,
        exceptions=(StoreError,),
        retry_if=is_transient_error,
        on_retry=on_retry,
    )
    def run():
        return resolver.identify(email, phone_number)

    return run()


def cmd_init(args: argparse.Namespace) -> None:
    db_path = Path(args.db)
    init_database(db_path)
    print(f"Initialized {db_path}")


def cmd_identify(args: argparse.Namespace) -> None:
    try:
        email, phone_number = parse_identify_request({"email": args.email, "phoneNumber": args.phone})
    except ValidationError as e:
        print("Invalid:")
        for err in e.errors:
            print(f" - {err}")
        raise SystemExit(2)

    with ContactStore(Path(args.db)) as store:
        resolver = IdentityResolver(store)
        try:
            result = identify_with_retry(resolver, email, phone_number, max_retries=args.retries)
        except (ContactLinkError, RetryError) as e:
            raise SystemExit(f"Failed to identify contact: {e}")
    print(json.dumps(result.to_response(), indent=2))


def cmd_identify_file(args: argparse.Namespace) -> None:
    input_path = Path(args.input)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")

    counts = {CREATED: 0, LINKED: 0, MERGED: 0, UNCHANGED: 0, "invalid": 0, "failed": 0}
    with ContactStore(Path(args.db)) as store, input_path.open("r", encoding="utf-8") as f:
        resolver = IdentityResolver(store)
        for lineno, line in enumerate(f, 1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                data = json.loads(line)
                if not isinstance(data, dict):
                    raise ValidationError(["Request must be a JSON object"])
                email, phone_number = parse_identify_request(data)
            except (json.JSONDecodeError, ValidationError) as e:
                print(f"[invalid] line {lineno}: {e}")
                counts["invalid"] += 1
                continue
            try:
                result = identify_with_retry(resolver, email, phone_number, max_retries=args.retries)
            except (ContactLinkError, RetryError) as e:
                print(f"[error] line {lineno} -> {e}")
                counts["failed"] += 1
                continue
            counts[result.outcome] += 1
            print(f"[{result.outcome}] line {lineno}: primary={result.primary_contact_id}")

    print(
        "Done. new={created} linked={linked} merged={merged} unchanged={unchanged} "
        "invalid={invalid} failed={failed}".format(**counts)
    )


def cmd_show(args: argparse.Namespace) -> None:
    with ContactStore(Path(args.db)) as store:
        resolver = IdentityResolver(store)
        try:
            result = resolver.lookup(args.id)
        except ContactNotFoundError as e:
            raise SystemExit(str(e))
        except ContactLinkError as e:
            raise SystemExit(f"Failed to look up contact: {e}")
    print(json.dumps(result.to_response(), indent=2))


def cmd_list(args: argparse.Namespace) -> None:
    db_path = Path(args.db)
    if not db_path.exists():
        print(f"Database not found: {db_path}")
        return
    with ContactStore(db_path) as store, store.transaction() as session:
        contacts = ContactRepository(session).all()
        if not contacts:
            print("No contacts in store.")
            return
        print(f"Found {len(contacts)} contacts in {db_path}:\n")
        for c in contacts:
            print(f"ID: {c.id}")
            print(f"  Email: {c.email}")
            print(f"  Phone: {c.phone_number}")
            print(f"  Precedence: {c.link_precedence}")
            print(f"  Linked to: {c.linked_id}")
            print(f"  Created: {c.created_at.isoformat()}")
            print()


def cmd_check(args: argparse.Namespace) -> None:
    db_path = Path(args.db)
    if not db_path.exists():
        raise SystemExit(f"Database not found: {db_path}")
    with ContactStore(db_path) as store, store.transaction() as session:
        violations = check_graph(session)
    if violations:
        print(f"Found {len(violations)} violations:")
        for v in violations:
            print(f" - {v}")
        raise SystemExit(1)
    print("Contact graph is consistent")


def main(argv=None):
    load_env()
    settings = load_settings()
    logger = get_logger(
        level=settings.log_level,
        log_dir=settings.log_dir,
        enable_file=settings.log_to_file,
    )

    parser = argparse.ArgumentParser(prog="contactlink", description="Resolve contact identities across email and phone")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--db", default=str(settings.db_path), help=f"Path to SQLite database (default: {settings.db_path})")

    subparsers = parser.add_subparsers(dest="command")
    ini = subparsers.add_parser("init", help="Create the contacts table")
    ini.set_defaults(func=cmd_init)

    idf = subparsers.add_parser("identify", help="Identify a contact by email and/or phone number")
    idf.add_argument("--email", help="Email address")
    idf.add_argument("--phone", help="Phone number")
    idf.add_argument("--retries", type=int, default=3, help="Retries on transient store failures (default 3)")
    idf.set_defaults(func=cmd_identify)

    idff = subparsers.add_parser("identify-file", help="Identify contacts from a file of JSON requests, one per line")
    idff.add_argument("--input", required=True, help="File with one {\"email\", \"phoneNumber\"} object per line")
    idff.add_argument("--retries", type=int, default=3, help="Retries on transient store failures (default 3)")
    idff.set_defaults(func=cmd_identify_file)

    shw = subparsers.add_parser("show", help="Show the consolidated identity containing a contact")
    shw.add_argument("--id", type=int, required=True, help="Contact id")
    shw.set_defaults(func=cmd_show)

    lst = subparsers.add_parser("list", help="List all stored contacts")
    lst.set_defaults(func=cmd_list)

    chk = subparsers.add_parser("check", help="Check the contact graph invariants")
    chk.set_defaults(func=cmd_check)

    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        logger.log_metrics_summary()
        return

    parser.print_help()


if __name__ == "__main__":
    main()
