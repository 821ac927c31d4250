import argparse
import logging
import sys
from pathlib import Path

from partsdash.adapters.clock import SystemClock
from partsdash.adapters.sqlite.migrator import SQLiteMigrator
from partsdash.adapters.sqlite_db import SQLiteEventStore
from partsdash.components.analytics import AnalyticsError, run_purge
from partsdash.rules.loader import load_rules
from partsdash.rules.models import Rules

logger = logging.getLogger("cli")

DB_PATH = "data/partsdash.db"
RULES_PATH = "rules.yaml"


def get_rules(path: str) -> Rules:
    if not Path(path).exists():
        logger.error("Rules file %s not found.", path)
        sys.exit(1)
    return load_rules(Path(path))


def handle_migrate(args: argparse.Namespace) -> None:
    Path(args.db).parent.mkdir(parents=True, exist_ok=True)
    applied = SQLiteMigrator(args.db).run_migrations()
    print(f"Applied {len(applied)} migrations.")


def handle_purge(args: argparse.Namespace) -> None:
    rules = get_rules(args.rules)
    try:
        out = run_purge(
            event_store=SQLiteEventStore(args.db),
            time_port=SystemClock(),
            rules=rules.analytics,
        )
    except AnalyticsError as e:
        logger.error("Purge failed: %s", e)
        sys.exit(1)
    print(f"Deleted {out.deleted} events older than {out.cutoff.isoformat()}.")


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(level=logging.INFO)

    parser = argparse.ArgumentParser(description="Partsdash analytics CLI")
    parser.add_argument("--db", default=DB_PATH, help="Path to the SQLite database")
    parser.add_argument("--rules", default=RULES_PATH, help="Path to rules.yaml")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # migrate
    subparsers.add_parser("migrate", help="Apply pending schema migrations")

    # purge
    subparsers.add_parser("purge", help="Delete events past the retention window")

    args = parser.parse_args(argv)

    if args.command == "migrate":
        handle_migrate(args)
    elif args.command == "purge":
        handle_purge(args)


if __name__ == "__main__":
    main()
