#!/usr/bin/env python3
"""
Command History CLI.

Provides command-line access to the command log: submit commands, undo,
redo, inspect the stacks and read the audit trail.

Usage:
    python -m caseledger.cli.history submit --database ledger.db --scope acme
        --action DeleteEntities --params '{"ids": [10, 11, 12]}'
    python -m caseledger.cli.history undo --database ledger.db --scope acme
    python -m caseledger.cli.history redo --database ledger.db --scope acme
    python -m caseledger.cli.history stack --database ledger.db --scope acme [--redo]
    python -m caseledger.cli.history audit --database ledger.db --scope acme --id 10
    python -m caseledger.cli.history changelog --database ledger.db --scope acme
    python -m caseledger.cli.history clear --database ledger.db --scope acme --force
"""

import argparse
import json
import logging
import sys

from caseledger.cli.utils import format_timestamp, parse_params, validate_database_path
from caseledger.core.config import LedgerConfig
from caseledger.core.errors import CaseLedgerError
from caseledger.core.logging_config import setup_logging, shutdown_logging
from caseledger.core.mutation import ENTITY_TYPES, TEST_CASE
from caseledger.core.scope import Scope
from caseledger.services.command_log import CommandLog
from caseledger.services.db_service import DatabaseService

logger = logging.getLogger(__name__)


def _open(args):
    db_service = DatabaseService(args.database)
    db_service.connect()
    return db_service, CommandLog(db_service, config=args.config)


def _scope(args) -> Scope:
    return Scope(args.scope, args.actor)


def submit_command(args) -> int:
    """Submit a command."""
    db_service = None
    try:
        params = parse_params(args.params)
        db_service, log = _open(args)
        result = log.submit_command(_scope(args), args.action, params)

        if args.json:
            print(json.dumps(result.data, indent=2))
        else:
            print(f"✓ {result.message}")
            print(f"  Command: {result.data['command_id']}")
        return 0

    except ValueError as e:
        print(f"✗ Error: {e}")
        return 1
    except CaseLedgerError as e:
        print(f"✗ {e.kind.replace('_', ' ').capitalize()} error: {e}")
        for name, problem in getattr(e, "errors", {}).items():
            print(f"  {name}: {problem}")
        return 1
    except Exception as e:
        logger.error(f"Failed to submit command: {e}")
        if args.verbose:
            raise
        return 1
    finally:
        if db_service:
            db_service.close()


def _replay(args, undo: bool) -> int:
    db_service = None
    try:
        db_service, log = _open(args)
        scope = _scope(args)
        result = log.execute_undo(scope) if undo else log.execute_redo(scope)

        if args.json:
            print(json.dumps(result.to_dict(), indent=2))
            return 0 if result.success or result.error is None else 1

        if result.success:
            print(f"✓ {'Undone' if undo else 'Redone'}: {result.message}")
            return 0
        if result.error is None:
            print(result.message)
            return 0
        print(f"✗ {result.message}")
        for conflict in result.data.get("conflicts", []):
            print(
                f"  {conflict['entity']}: expected version {conflict['expected']}, "
                f"found {conflict['actual']}"
            )
        return 1

    except Exception as e:
        logger.error(f"Failed to {'undo' if undo else 'redo'}: {e}")
        if args.verbose:
            raise
        return 1
    finally:
        if db_service:
            db_service.close()


def undo_command(args) -> int:
    """Undo the most recent command."""
    return _replay(args, undo=True)


def redo_command(args) -> int:
    """Redo the most recently undone command."""
    return _replay(args, undo=False)


def show_stack(args) -> int:
    """Show the undo (or redo) stack."""
    db_service = None
    try:
        db_service, log = _open(args)
        scope = _scope(args)
        if args.redo:
            entries = log.get_redo_stack(scope, args.limit)
        else:
            entries = log.get_undo_stack(scope, args.limit)

        if args.json:
            print(json.dumps(entries, indent=2))
            return 0

        label = "redo" if args.redo else "undo"
        if not entries:
            print(f"Nothing to {label}.")
            return 0
        print(f"\n{label.capitalize()} stack ({len(entries)}):\n")
        for entry in entries:
            print(f"[{entry['id']}] {entry['description']}")
            print(f"  {entry['action_type']} at {format_timestamp(entry['created_at'])}")
        return 0

    except Exception as e:
        logger.error(f"Failed to read stack: {e}")
        if args.verbose:
            raise
        return 1
    finally:
        if db_service:
            db_service.close()


def _print_entry(entry) -> None:
    print(
        f"#{entry.sequence} {entry.action.value} {entry.entity_type} {entry.entity_id} "
        f"by {entry.actor_id} at {format_timestamp(entry.created_at)}"
    )
    for diff in entry.diffs:
        print(f"  {diff.field}: {diff.old_value!r} -> {diff.new_value!r}")


def show_audit(args) -> int:
    """Show the audit trail of one entity."""
    db_service = None
    try:
        db_service, log = _open(args)
        entries = log.get_audit_log(args.id, args.entity_type, _scope(args))

        if args.json:
            print(json.dumps([e.to_dict() for e in entries], indent=2))
            return 0
        if not entries:
            print(f"No audit entries for {args.entity_type} {args.id}.")
            return 0
        for entry in entries:
            _print_entry(entry)
        return 0

    except Exception as e:
        logger.error(f"Failed to read audit log: {e}")
        if args.verbose:
            raise
        return 1
    finally:
        if db_service:
            db_service.close()


def show_changelog(args) -> int:
    """Show recent audit entries of the scope."""
    db_service = None
    try:
        db_service, log = _open(args)
        entries = log.get_changelog(_scope(args), args.limit)

        if args.json:
            print(json.dumps([e.to_dict() for e in entries], indent=2))
            return 0
        if not entries:
            print("No changes recorded.")
            return 0
        for entry in entries:
            _print_entry(entry)
        return 0

    except Exception as e:
        logger.error(f"Failed to read changelog: {e}")
        if args.verbose:
            raise
        return 1
    finally:
        if db_service:
            db_service.close()


def clear_history(args) -> int:
    """Expire the whole undo/redo history of a scope."""
    if not args.force:
        response = input(f"Clear undo/redo history of scope '{args.scope}'? [y/N]: ")
        if response.lower() != "y":
            print("Cancelled.")
            return 0

    db_service = None
    try:
        db_service, log = _open(args)
        count = log.clear_history(_scope(args))
        print(f"✓ Cleared history ({count} command{'s' if count != 1 else ''} expired)")
        return 0

    except Exception as e:
        logger.error(f"Failed to clear history: {e}")
        if args.verbose:
            raise
        return 1
    finally:
        if db_service:
            db_service.close()


def _add_common(sub) -> None:
    sub.add_argument("--database", "-d", help="Path to the ledger database file")
    sub.add_argument("--scope", "-s", required=True, help="Scope (tenant) id")
    sub.add_argument("--actor", "-a", default="cli", help="Acting user id")


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Inspect and drive the reversible command log",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )
    parser.add_argument("--env-file", help="Optional .env file with CASELEDGER_* settings")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Submit command
    submit_parser = subparsers.add_parser("submit", help="Submit a command")
    _add_common(submit_parser)
    submit_parser.add_argument("--action", required=True, help="Action type")
    submit_parser.add_argument("--params", "-p", help="Parameters as a JSON object")
    submit_parser.add_argument("--json", action="store_true", help="Output as JSON")
    submit_parser.set_defaults(func=submit_command)

    # Undo / redo
    undo_parser = subparsers.add_parser("undo", help="Undo the last command")
    _add_common(undo_parser)
    undo_parser.add_argument("--json", action="store_true", help="Output as JSON")
    undo_parser.set_defaults(func=undo_command)

    redo_parser = subparsers.add_parser("redo", help="Redo the last undone command")
    _add_common(redo_parser)
    redo_parser.add_argument("--json", action="store_true", help="Output as JSON")
    redo_parser.set_defaults(func=redo_command)

    # Stack
    stack_parser = subparsers.add_parser("stack", help="Show the undo or redo stack")
    _add_common(stack_parser)
    stack_parser.add_argument("--redo", action="store_true", help="Show the redo stack")
    stack_parser.add_argument("--limit", "-l", type=int, help="Maximum entries")
    stack_parser.add_argument("--json", action="store_true", help="Output as JSON")
    stack_parser.set_defaults(func=show_stack)

    # Audit
    audit_parser = subparsers.add_parser("audit", help="Show an entity's audit trail")
    _add_common(audit_parser)
    audit_parser.add_argument("--id", type=int, required=True, help="Entity id")
    audit_parser.add_argument(
        "--entity-type", choices=ENTITY_TYPES, default=TEST_CASE, help="Entity type"
    )
    audit_parser.add_argument("--json", action="store_true", help="Output as JSON")
    audit_parser.set_defaults(func=show_audit)

    # Changelog
    changelog_parser = subparsers.add_parser("changelog", help="Show recent changes")
    _add_common(changelog_parser)
    changelog_parser.add_argument("--limit", "-l", type=int, default=50)
    changelog_parser.add_argument("--json", action="store_true", help="Output as JSON")
    changelog_parser.set_defaults(func=show_changelog)

    # Clear
    clear_parser = subparsers.add_parser("clear", help="Clear undo/redo history")
    _add_common(clear_parser)
    clear_parser.add_argument(
        "--force", "-f", action="store_true", help="Skip confirmation"
    )
    clear_parser.set_defaults(func=clear_history)

    args = parser.parse_args()

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    args.config = LedgerConfig.from_env(args.env_file)
    # Console echoes warnings and errors only, unless --verbose
    setup_logging(
        args.config,
        verbose=args.verbose,
        console_level=logging.DEBUG if args.verbose else logging.WARNING,
    )
    if not args.database:
        args.database = args.config.db_path

    # Only submit may create a new database file
    allow_create = args.command == "submit"
    try:
        if not validate_database_path(args.database, allow_create=allow_create):
            sys.exit(1)
        sys.exit(args.func(args))
    finally:
        shutdown_logging()


if __name__ == "__main__":
    main()
