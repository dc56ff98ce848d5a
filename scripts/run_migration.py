"""CLI entry point for migrating one collection.

Usage:
    python scripts/run_migration.py myapp.collections:movies --strict
    python scripts/run_migration.py myapp.collections:movies --no-strict

The target attribute must be a ``(schema, indexes)`` pair or a callable
returning one.
"""

import argparse
import importlib
import sys

from loguru import logger

from config.settings import settings
from migration.migrator import migrate
from rpc.invoker import GrpcInvoker


def load_target(target: str):
    """Resolve ``module:attribute`` to ``(schema, indexes)``."""
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"Expected 'module:attribute', got '{target}'")

    value = getattr(importlib.import_module(module_name), attribute)
    if callable(value):
        value = value()
    schema, indexes = value
    return schema, list(indexes or [])


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Create or verify a Milvus collection and its indexes")
    parser.add_argument("target", help="module:attribute yielding (schema, indexes)")
    parser.add_argument(
        "--strict",
        action=argparse.BooleanOptionalAction,
        default=settings.strict_migration,
        help="Fail on schema drift instead of logging a warning",
    )
    parser.add_argument("--host", default=settings.milvus_host)
    parser.add_argument("--port", type=int, default=settings.milvus_port)
    parser.add_argument("--db", default=settings.milvus_database)
    return parser


def main(argv: list[str] | None = None):
    args = build_parser().parse_args(argv)

    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)

    schema, indexes = load_target(args.target)
    logger.info(f"Migrating collection: {schema.name}")

    invoker = GrpcInvoker(host=args.host, port=args.port, db_name=args.db)
    invoker.connect()
    try:
        result = migrate(invoker, schema, indexes, strict=args.strict, db_name=args.db)
    finally:
        invoker.disconnect()

    if result.diff is not None:
        logger.warning(f"Schema drift left in place: {result.diff.summary()}")
    for field_name, action in result.index_actions.items():
        logger.info(f"  {field_name}: {action.value}")

    logger.info("Done.")


if __name__ == "__main__":
    main()
