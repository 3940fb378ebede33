#!/usr/bin/env python3
"""userhub bootstrap seeder.

Creates the "admin" and "user" roles, the baseline permissions
(create user, edit user, delete user, view user), grants them all to
"admin", and creates the first admin account. Run once per environment;
a second run fails with a conflict and changes nothing.

Exit codes:
    0: seeded
    1: already seeded or invalid admin credentials

Usage:
    python scripts/seed.py
    python scripts/seed.py --email ops@example.com --name Ops --password s3cret!
"""

import argparse
import asyncio
import sys

from userhub.bootstrap import run_seed
from userhub.config import get_config
from userhub.database import close_engine
from userhub.errors import UserhubError
from userhub.utils.logging import get_logger, setup_logging

logger = get_logger("scripts.seed")


async def _seed(args: argparse.Namespace) -> int:
    config = get_config()
    try:
        admin = await run_seed(
            config,
            admin_name=args.name,
            admin_email=args.email,
            admin_password=args.password,
        )
    except UserhubError as e:
        logger.error("seed_failed", error=type(e).__name__, detail=e.detail)
        return 1
    finally:
        await close_engine()

    logger.info("seed_admin_created", admin_id=admin.id, email=admin.email, roles=admin.roles)
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="userhub bootstrap seeder")
    parser.add_argument("--name", help="Admin display name (default: SEED_ADMIN_NAME)")
    parser.add_argument("--email", help="Admin email (default: SEED_ADMIN_EMAIL)")
    parser.add_argument("--password", help="Admin password (default: SEED_ADMIN_PASSWORD)")
    parser.add_argument("--debug", action="store_true", help="Human-readable log output")
    args = parser.parse_args()

    setup_logging(debug=args.debug)
    return asyncio.run(_seed(args))


if __name__ == "__main__":
    sys.exit(main())
