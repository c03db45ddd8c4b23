#!/usr/bin/env python
# booking_engine/commands/engine.py
"""
Booking engine management commands.

Usage:
    python -m booking_engine.commands.engine init-db       # Create tables
    python -m booking_engine.commands.engine seed-rules    # Store built-in rule registry
    python -m booking_engine.commands.engine slots TENANT RESOURCE 2026-10-20
"""

import argparse
from datetime import date
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from ..core.config import settings
from ..core.exceptions import DomainException
from ..database import SessionLocal, init_db, with_db_retry
from ..repositories.factory import RepositoryFactory
from ..services.booking_lifecycle_service import BookingLifecycleService
from ..services.constraints.catalog import DEFAULT_INDUSTRY_RULES

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


class EngineCommand:
    """Engine management command handler."""

    def init_db(self) -> None:
        logger.info("Creating booking engine schema")
        init_db()

    def seed_rules(self, industries: Optional[List[str]] = None) -> Dict[str, int]:
        """
        Insert the built-in rule registry into constraint_rules.

        Rows already present (matched by industry and name) are left untouched
        so edits made by operators survive a re-seed.

        Returns:
            dict: Number of rules inserted per industry
        """
        selected = industries or sorted(DEFAULT_INDUSTRY_RULES)
        unknown = [name for name in selected if name not in DEFAULT_INDUSTRY_RULES]
        if unknown:
            raise ValueError(f"Unknown industry type(s): {', '.join(unknown)}")

        inserted: Dict[str, int] = {}
        db = SessionLocal()
        try:
            repository = RepositoryFactory.create_constraint_repository(db)
            for industry in selected:
                inserted[industry] = repository.upsert_rules(
                    industry, DEFAULT_INDUSTRY_RULES[industry]
                )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        logger.info(f"Seeded {sum(inserted.values())} rules across {len(inserted)} industries")
        return inserted

    def slots(
        self,
        tenant_id: str,
        resource_id: str,
        day: date,
        duration: Optional[int] = None,
        granularity: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        db = SessionLocal()
        try:
            service = BookingLifecycleService(db)
            slots = with_db_retry(
                "slots",
                lambda: service.get_slots(
                    tenant_id,
                    resource_id,
                    day,
                    service_duration_minutes=duration,
                    granularity_minutes=granularity,
                ),
            )
            return [slot.model_dump(mode="json") for slot in slots]
        finally:
            db.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Booking engine management",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m booking_engine.commands.engine init-db
  python -m booking_engine.commands.engine seed-rules --industry restaurant
  python -m booking_engine.commands.engine slots T1 R1 2026-10-20 --duration 60
        """,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("init-db", help="Create database tables")

    seed_parser = subparsers.add_parser("seed-rules", help="Store the built-in rule registry")
    seed_parser.add_argument(
        "--industry",
        action="append",
        dest="industries",
        help="Industry to seed (repeatable, default: all)",
    )

    slots_parser = subparsers.add_parser("slots", help="List slots for a resource and date")
    slots_parser.add_argument("tenant_id")
    slots_parser.add_argument("resource_id")
    slots_parser.add_argument("day", type=date.fromisoformat, help="YYYY-MM-DD")
    slots_parser.add_argument("--duration", type=int, default=None, help="Service minutes")
    slots_parser.add_argument("--granularity", type=int, default=None, help="Step minutes")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the engine command."""
    parser = build_parser()
    args = parser.parse_args(argv)
    cmd = EngineCommand()

    try:
        if args.command == "init-db":
            cmd.init_db()
            print("Schema created.")
        elif args.command == "seed-rules":
            result = cmd.seed_rules(args.industries)
            for industry, count in result.items():
                print(f"  {industry}: {count} rule(s) inserted")
        elif args.command == "slots":
            slots = cmd.slots(
                args.tenant_id, args.resource_id, args.day, args.duration, args.granularity
            )
            print(json.dumps(slots, indent=2))
        else:
            parser.print_help()
            return 1
    except (DomainException, ValueError) as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
