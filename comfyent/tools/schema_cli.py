"""
Schema CLI tool for comfyent.

This tool inspects entity definitions and stored databases:
- snapshot: Export the entity definitions to JSON, with fingerprint
- check: Compare a database file with the definitions

Usage:
    comfyent-schema snapshot > schema.lock.json
    comfyent-schema check --db ent.db

Invariants:
    - Breaking differences cause a non-zero exit code
    - Snapshot output is deterministic (sorted JSON)
    - check never writes to the database
"""

from __future__ import annotations

import argparse
import importlib
import json
import logging
import sys

from ..config import StoreSettings
from ..errors import ComfyEntError
from ..schema import SchemaChange, SchemaManager, SchemaRegistry, User, build_registry
from ..store import Store

logger = logging.getLogger(__name__)


class SchemaCLI:
    """CLI commands for schema inspection.

    Example:
        >>> cli = SchemaCLI()
        >>> print(cli.snapshot(registry))
        >>> ok, changes = cli.check(registry, "ent.db")
    """

    def snapshot(self, registry: SchemaRegistry) -> str:
        """Export definitions to JSON.

        Args:
            registry: Registry to export

        Returns:
            JSON string representation
        """
        output = {
            "version": 1,
            "fingerprint": registry.fingerprint or "unfrozen",
            "schema": registry.to_dict(),
        }
        return json.dumps(output, indent=2, sort_keys=True)

    def check(self, registry: SchemaRegistry, db_path: str) -> tuple[bool, list[SchemaChange]]:
        """Compare a database with the definitions.

        Args:
            registry: Declared entities
            db_path: Existing SQLite file to inspect (opened read-only)

        Returns:
            Tuple of (is_compatible, list_of_changes)
        """
        store = Store(StoreSettings(path=db_path, mode="ro", wal_mode=False))
        with store:
            diff = SchemaManager(store).diff(registry.entities())

        changes = [change for table_changes in diff.values() for change in table_changes]
        return not any(c.is_breaking for c in changes), changes


def _load_registry(module_path: str | None = None) -> SchemaRegistry:
    """Load a registry from a module, or the default User registry.

    The module must expose ``registry`` or ``get_registry()``.
    """
    if module_path:
        module = importlib.import_module(module_path)
        if hasattr(module, "registry"):
            return module.registry
        if hasattr(module, "get_registry"):
            return module.get_registry()
        raise ValueError(f"Module {module_path} has no 'registry' or 'get_registry()'")

    return build_registry(User)


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for schema tool."""
    parser = argparse.ArgumentParser(description="comfyent schema tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    snapshot_parser = subparsers.add_parser("snapshot", help="Export definitions to JSON")
    snapshot_parser.add_argument("--module", help="Python module containing the registry")
    snapshot_parser.add_argument("--output", "-o", help="Output file (default: stdout)")

    check_parser = subparsers.add_parser("check", help="Check a database against definitions")
    check_parser.add_argument("--db", required=True, help="SQLite database file")
    check_parser.add_argument("--module", help="Python module containing the registry")
    check_parser.add_argument(
        "--format", choices=["text", "json"], default="text", help="Output format"
    )

    args = parser.parse_args(argv)
    cli = SchemaCLI()
    registry = _load_registry(args.module)
    if not registry.frozen:
        registry.freeze()

    if args.command == "snapshot":
        output = cli.snapshot(registry)
        if args.output:
            with open(args.output, "w") as f:
                f.write(output)
            print(f"Schema exported to {args.output}", file=sys.stderr)
        else:
            print(output)
        return 0

    try:
        is_compatible, changes = cli.check(registry, args.db)
    except ComfyEntError as exc:
        print(f"Cannot inspect {args.db}: {exc}", file=sys.stderr)
        return 2

    if args.format == "json":
        print(json.dumps([c.to_dict() for c in changes], indent=2))
    elif not changes:
        print("Database matches the schema")
    else:
        print(f"Found {len(changes)} difference(s):")
        for change in changes:
            print(f"  {change}")

    return 0 if is_compatible else 1


if __name__ == "__main__":
    sys.exit(main())
