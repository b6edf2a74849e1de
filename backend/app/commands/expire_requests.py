#!/usr/bin/env python
# backend/app/commands/expire_requests.py
"""
Expire stale booking requests.

Pending requests past their response window and accepted requests past
their payment deadline move to ``expired``; held Stripe authorizations are
released. Meant to run from cron alongside the lazy checks the API does.

Usage:
    python -m app.commands.expire_requests             # Expire stale requests
    python -m app.commands.expire_requests --dry-run   # Only list them
"""

import argparse
import logging
import sys
from typing import Callable, Optional, Sequence

from sqlalchemy.orm import Session

from app.database import SessionLocal, init_db
from app.services.booking_request_service import BookingRequestService, ExpirySweepResult

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def run_expiry_sweep(
    dry_run: bool = False, session_factory: Callable[[], Session] = SessionLocal
) -> ExpirySweepResult:
    """Run one sweep in its own session."""
    db = session_factory()
    try:
        return BookingRequestService(db).expire_stale_requests(dry_run=dry_run)
    finally:
        db.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the expiry command."""
    parser = argparse.ArgumentParser(
        description="Expire stale coaching booking requests",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m app.commands.expire_requests             # Expire stale requests
  python -m app.commands.expire_requests --dry-run   # Show what would expire
        """,
    )
    parser.add_argument(
        "--dry-run", action="store_true", help="List stale requests without changing them"
    )
    args = parser.parse_args(argv)

    init_db()
    result = run_expiry_sweep(dry_run=args.dry_run)

    verb = "Would expire" if result.dry_run else "Expired"
    print(f"{verb} {len(result.expired)} booking request(s)")
    for booking_request_id in result.expired:
        print(f"  {booking_request_id}")
    if result.failed:
        print(f"Failed to expire {len(result.failed)} booking request(s):")
        for booking_request_id in result.failed:
            print(f"  {booking_request_id}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
