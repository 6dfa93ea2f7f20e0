import argparse
import json
import os
from pathlib import Path

from . import __version__
from .client import HubSpotClient
from .database import LocalStore
from .dedupe import dedupe_company, dedupe_contact
from .env import hubspot_base_url, hubspot_token, load_env
from .logger import get_logger
from .phone import normalize_contact_phones
from .storage import load_records_file, seed_store

logger = get_logger()


def build_store(args: argparse.Namespace):
    if args.db:
        return LocalStore(Path(args.db))
    token = hubspot_token(args.token)
    if not token:
        raise SystemExit("HUBSPOT_TOKEN not set. Set env var, pass --token, or use --db for a local store.")
    return HubSpotClient(token, base_url=hubspot_base_url())


def _print_result(result: dict) -> None:
    print(json.dumps(result, indent=2, ensure_ascii=False))


def cmd_dedupe_contact(args: argparse.Namespace) -> None:
    store = build_store(args)
    _print_result(dedupe_contact(store, args.id))


def cmd_dedupe_company(args: argparse.Namespace) -> None:
    store = build_store(args)
    fields = {"hs_object_id": args.id}
    for name in ("name", "domain", "website", "createdate"):
        value = getattr(args, name)
        if value is not None:
            fields[name] = value
    _print_result(dedupe_company(store, fields))


def cmd_normalize_phones(args: argparse.Namespace) -> None:
    store = build_store(args)
    _print_result(normalize_contact_phones(store, args.id))


def cmd_load_records(args: argparse.Namespace) -> None:
    if not args.db:
        raise SystemExit("load-records writes to a local store; pass --db PATH.")
    input_path = Path(args.input)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    try:
        records = load_records_file(input_path)
    except ValueError as e:
        raise SystemExit(str(e))
    outcome = seed_store(LocalStore(Path(args.db)), records)
    print(f"Loaded: {outcome['loaded']}")
    for record_id, errors in outcome["errors"].items():
        print(f" - {record_id}: {'; '.join(errors)}")


def main():
    # Load .env if present (HUBSPOT_TOKEN, HUBSPOT_BASE_URL, CRMDEDUPE_LOG_LEVEL)
    load_env()
    if os.getenv("CRMDEDUPE_LOG_LEVEL"):
        logger.set_level(os.environ["CRMDEDUPE_LOG_LEVEL"])

    parser = argparse.ArgumentParser(prog="crmdedupe", description="Find and merge duplicate CRM contacts and companies")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--db", help="Use a local SQLite store at this path instead of HubSpot")
    parser.add_argument("--token", help="HubSpot private app token (or set HUBSPOT_TOKEN)")

    subparsers = parser.add_subparsers(dest="command")
    dc = subparsers.add_parser("dedupe-contact", help="Match one contact against the CRM and merge a single duplicate")
    dc.add_argument("--id", required=True, help="Enrolled contact id")
    dc.set_defaults(func=cmd_dedupe_contact)

    dco = subparsers.add_parser("dedupe-company", help="Match one company and merge all duplicates into the oldest")
    dco.add_argument("--id", required=True, help="Enrolled company id (hs_object_id)")
    dco.add_argument("--name", help="Company name (fetched when omitted)")
    dco.add_argument("--domain", help="Company domain (fetched when omitted)")
    dco.add_argument("--website", help="Company website (fetched when omitted)")
    dco.add_argument("--createdate", help="Company create date (fetched when omitted)")
    dco.set_defaults(func=cmd_dedupe_company)

    ph = subparsers.add_parser("normalize-phones", help="Rewrite a contact's phone fields in E.164 format")
    ph.add_argument("--id", required=True, help="Contact id")
    ph.set_defaults(func=cmd_normalize_phones)

    ld = subparsers.add_parser("load-records", help="Load a JSON export of records into the local store")
    ld.add_argument("--input", required=True, help="Path to JSON file with a 'records' list")
    ld.set_defaults(func=cmd_load_records)

    args = parser.parse_args()

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
