"""
comfyent demo - main entry point.

Walks through every operation of the access layer against a SQLite file:
bulk create, filtered query, update, pagination, aggregation, a
transaction, delete and a final listing.

Usage:
    python -m comfyent [--path ent.db] [--memory] [--fresh]

Configuration is read from COMFYENT_* / COMFYENT_LOG_* environment
variables (see config.py); command-line flags override them.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable

import json_log_formatter

from .client import Client
from .config import MEMORY_PATH, LogSettings, StoreSettings
from .errors import ComfyEntError
from .predicates import contains, gt
from .query import Aggregate, Direction

logger = logging.getLogger(__name__)


def setup_logging(settings: LogSettings) -> None:
    """Configure root logging.

    Args:
        settings: Logging settings
    """
    level = getattr(logging, settings.level.upper(), logging.INFO)

    if settings.format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]


def run_demo(client: Client, out: Callable[[str], None] = print) -> None:
    """Run the walkthrough against a ready client.

    Raises:
        ComfyEntError: On the first failing step
    """
    users = client.user.create_bulk([
        {"name": "Alice", "age": 30, "email": "alice@example.com"},
        {"name": "Bob", "age": 32, "email": "bob@example.com"},
        {"name": "Charlie", "age": 35, "email": "charlie@example.com"},
    ])
    out(f"Created {len(users)} users")

    filtered = (
        client.user.query()
        .where(gt("age", 30), contains("name", "a"))
        .order_by("age", Direction.DESC)
        .all()
    )
    out("Filtered users:")
    for u in filtered:
        out(f"  User: {u.name}, Age: {u.age}")

    updated = client.user.update(users[0].id, age=31, email="alice_new@example.com")
    out(f"Updated user: {updated.name}, New Age: {updated.age}, New Email: {updated.email}")

    page_size = 2
    page = 0
    while True:
        paged = client.user.query().limit(page_size).offset(page * page_size).all()
        if not paged:
            break
        page += 1
        out(f"Page {page}:")
        for u in paged:
            out(f"  User: {u.name}")

    avg_age = client.user.query().aggregate(Aggregate.avg("age"))
    out(f"Average age: {avg_age:.2f}")

    def unit_of_work(tx):
        new_user = tx.user.create(name="David", age=28, email="david@example.com")
        tx.user.update(users[1].id, age=33)
        return new_user

    david = client.with_tx(unit_of_work)
    out(f"Created user in transaction: {david.name}")

    client.user.delete(users[2].id)
    out(f"Deleted user: {users[2].name}")

    out("All users after operations:")
    for u in client.user.query().all():
        out(f"  User: {u.name}, Age: {u.age}, Email: {u.email}")


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for the demo."""
    parser = argparse.ArgumentParser(description="comfyent walkthrough")
    parser.add_argument("--path", help="Database file (default: COMFYENT_PATH or ent.db)")
    parser.add_argument("--memory", action="store_true", help="Use an in-memory database")
    parser.add_argument("--fresh", action="store_true", help="Delete existing users first")
    parser.add_argument("--log-level", help="Override COMFYENT_LOG_LEVEL")
    args = parser.parse_args(argv)

    log_settings = LogSettings()
    if args.log_level:
        log_settings = log_settings.model_copy(update={"level": args.log_level})
    setup_logging(log_settings)

    overrides = {}
    if args.memory:
        overrides["path"] = MEMORY_PATH
    elif args.path:
        overrides["path"] = args.path
    settings = StoreSettings(**overrides)

    try:
        client = Client.open(settings)
    except ComfyEntError as exc:
        print(f"failed opening store: {exc}", file=sys.stderr)
        return 1

    with client:
        try:
            if args.fresh:
                removed = client.user.delete_where()
                logger.info("Removed existing users", extra={"count": removed})
            run_demo(client)
        except ComfyEntError as exc:
            print(f"demo failed: {exc}", file=sys.stderr)
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
