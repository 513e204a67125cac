# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
from datetime import UTC, datetime
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from factledger.app import (
    add_fact,
    duplicate_organizations,
    duplicate_people,
    fact_history,
    upgrade_database,
)
from factledger.config import configure_logging, get_api_config
from factledger.domain.canonical_keys import extract_domain, generate_org_key, generate_person_key
from factledger.domain.conflicts import ConflictStrategy
from factledger.domain.model import FactInput, Subject

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from factledger.domain.conflicts import FactOutcome
    from factledger.domain.entity_resolution import DuplicateCandidate

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_MANUAL_REVIEW = 3


def _add_subject_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--entity-type", required=True, help="person, organization, deal, ...")
    parser.add_argument("--entity-id", required=True, help="Id of the subject entity")


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Temporal fact store for Investor OS")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, help="Bind address (defaults to config)")
    serve.add_argument("--port", type=int, help="Bind port (defaults to config)")

    upgrade = subparsers.add_parser("db-upgrade", help="Migrate the database schema to head")
    upgrade.add_argument("--database-uri", type=str, help="Override DATABASE_URI")

    add = subparsers.add_parser("add-fact", help="Ingest one fact with conflict detection")
    _add_subject_arguments(add)
    add.add_argument("--fact-type", required=True)
    add.add_argument("--key", required=True)
    add.add_argument("--value", required=True)
    add.add_argument("--source-type", required=True)
    add.add_argument("--source-id")
    add.add_argument("--source-url")
    add.add_argument("--confidence", type=float, default=1.0)
    add.add_argument("--created-by")
    add.add_argument(
        "--valid-from",
        type=str,
        help="ISO-8601 timestamp the fact became true (defaults to now)",
    )
    add.add_argument(
        "--strategy",
        choices=[strategy.value for strategy in ConflictStrategy],
        help="Resolve a conflict with this strategy instead of escalating it",
    )

    facts = subparsers.add_parser("facts", help="Show the version history of one slot")
    _add_subject_arguments(facts)
    facts.add_argument("--fact-type", required=True)
    facts.add_argument("--key", required=True)

    person_key = subparsers.add_parser("person-key", help="Print a person's canonical key")
    person_key.add_argument("--first-name", required=True)
    person_key.add_argument("--last-name", required=True)
    person_key.add_argument("--email")

    org_key = subparsers.add_parser("org-key", help="Print an organization's canonical key")
    org_key.add_argument("--name", required=True)
    org_key.add_argument("--domain", help="Domain, email address or website URL")

    duplicates = subparsers.add_parser("duplicates", help="List likely duplicate entities")
    duplicates_sub = duplicates.add_subparsers(dest="duplicates_command", required=True)
    duplicate_person = duplicates_sub.add_parser("person", help="Similar people")
    duplicate_person.add_argument("--first-name", required=True)
    duplicate_person.add_argument("--last-name", required=True)
    duplicate_org = duplicates_sub.add_parser("organization", help="Similar organizations")
    duplicate_org.add_argument("--name", required=True)

    return parser.parse_args(list(argv))


def _parse_iso_datetime(value: str) -> datetime:
    try:
        normalized = value.strip()
        if normalized.endswith("Z"):
            normalized = normalized[:-1] + "+00:00"
        dt = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise ValueError(f"Invalid ISO timestamp: {value}") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _fact_input(args: argparse.Namespace) -> FactInput:
    return FactInput(
        subject=Subject.parse(args.entity_type, args.entity_id),
        fact_type=args.fact_type,
        key=args.key,
        value=args.value,
        source_type=args.source_type,
        source_id=args.source_id,
        source_url=args.source_url,
        confidence=args.confidence,
        created_by=args.created_by,
        valid_from=_parse_iso_datetime(args.valid_from) if args.valid_from else None,
    )


def _print_outcome(outcome: FactOutcome) -> None:
    if outcome.requires_manual_review:
        print(f"manual review required: {outcome.conflict.message if outcome.conflict else ''}")
        if outcome.conflict is not None:
            print(f"suggested strategy: {outcome.conflict.suggested_strategy}")
        return
    print(f"{outcome.resolution} ({outcome.classification}) fact_id={outcome.fact_id}")
    if outcome.superseded_fact_id is not None:
        print(f"superseded {outcome.superseded_fact_id}")


def _print_candidates(candidates: list[DuplicateCandidate]) -> None:
    if not candidates:
        print("no duplicates found")
    for candidate in candidates:
        contact = f" <{candidate.contact}>" if candidate.contact else ""
        print(f"{candidate.similarity:.2f}  {candidate.id}  {candidate.name}{contact}")


def _serve(args: argparse.Namespace) -> None:
    import uvicorn  # noqa: PLC0415

    from factledger.adapters.http import create_app  # noqa: PLC0415

    config = get_api_config()
    uvicorn.run(
        create_app(),
        host=args.host or config.host,
        port=args.port or config.port,
        log_config=None,
    )


def _run(args: argparse.Namespace) -> int:
    if args.command == "serve":
        _serve(args)
    elif args.command == "db-upgrade":
        revision = upgrade_database(args.database_uri)
        print(f"schema at revision {revision}")
    elif args.command == "add-fact":
        outcome = add_fact(
            _fact_input(args),
            strategy=ConflictStrategy(args.strategy) if args.strategy else None,
        )
        _print_outcome(outcome)
        if outcome.requires_manual_review:
            return EXIT_MANUAL_REVIEW
    elif args.command == "facts":
        subject = Subject.parse(args.entity_type, args.entity_id)
        for fact in fact_history(subject, args.fact_type, args.key):
            state = "current" if fact.is_current else f"retired {fact.valid_until:%Y-%m-%d}"
            print(
                f"{fact.valid_from:%Y-%m-%d %H:%M}  {fact.value!r}  "
                f"source={fact.source_type} confidence={fact.confidence:.2f}  [{state}]"
            )
    elif args.command == "person-key":
        print(
            generate_person_key(
                first_name=args.first_name,
                last_name=args.last_name,
                email=args.email,
            )
        )
    elif args.command == "org-key":
        print(generate_org_key(name=args.name, domain=extract_domain(args.domain)))
    elif args.command == "duplicates" and args.duplicates_command == "person":
        _print_candidates(duplicate_people(args.first_name, args.last_name))
    elif args.command == "duplicates" and args.duplicates_command == "organization":
        _print_candidates(duplicate_organizations(args.name))
    else:
        raise ValueError(f"Unsupported command: {args.command}")
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)

    try:
        configure_logging(level=logging.DEBUG if parsed_args.verbose else None)
        exit_code = _run(parsed_args)
    except ValueError:
        log.exception("Invalid input")
        sys.exit(EXIT_USAGE)
    except Exception:
        log.exception("Fatal error")
        sys.exit(EXIT_FAILURE)
    if exit_code != EXIT_OK:
        sys.exit(exit_code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
