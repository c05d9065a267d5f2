#!/usr/bin/env python3
"""
Create Invite Codes

Issues signup invite codes carrying a quota and a validity period.

Usage:
    python3 ops/create_invite_codes.py --count 5 --limit 100 --months 1
"""

import sys
import argparse
from pathlib import Path

# Add backend to path
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

import settings
from db import get_engine, get_session, init_database
from auth_service import AuthService
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create signup invite codes")
    parser.add_argument("--count", type=int, default=1, help="number of codes")
    parser.add_argument("--limit", type=int, required=True, help="quota per code (GB)")
    parser.add_argument("--months", type=int, default=1, help="validity per code (months)")
    args = parser.parse_args(argv)

    if args.count < 1 or args.limit < 0 or args.months < 1:
        logger.error("count and months must be positive, limit must not be negative")
        return 1

    engine = get_engine(settings.INTERNAL_DB_PATH)
    init_database(engine)

    with get_session(engine) as db:
        codes = AuthService(db).create_invite_codes(args.count, args.limit, args.months)
        for code in codes:
            print(code.code)

    logger.info(f"Created {args.count} invite code(s): {args.limit} GB, {args.months} month(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
