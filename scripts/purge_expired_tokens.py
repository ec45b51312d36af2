#!/usr/bin/env python3
"""Delete access token records whose refresh token has expired.

Every read path already rejects expired records; this sweep only keeps the
table small. Run it from cron or a scheduled job.

Usage:
    python scripts/purge_expired_tokens.py
    python scripts/purge_expired_tokens.py --grace-days 7
    python scripts/purge_expired_tokens.py --json
"""

import argparse
import asyncio
import json
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import structlog

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

logger = structlog.get_logger(__name__)


async def purge(grace_days: int) -> dict:
    from credgate.core.infrastructure.database.session import get_async_session
    from credgate.modules.tokens.infrastructure.mappers import AccessTokenMapper
    from credgate.modules.tokens.infrastructure.repositories import (
        PostgreSQLAccessTokenRepository,
    )

    cutoff = datetime.now(UTC) - timedelta(days=grace_days)
    async with get_async_session() as session:
        repository = PostgreSQLAccessTokenRepository(session, AccessTokenMapper())
        deleted = await repository.purge_expired(cutoff)
        await session.commit()

    logger.info("purge_expired_tokens.done", deleted=deleted, cutoff=cutoff.isoformat())
    return {"deleted": deleted, "cutoff": cutoff.isoformat()}


def main() -> int:
    parser = argparse.ArgumentParser(description="Purge expired token records")
    parser.add_argument(
        "--grace-days",
        type=int,
        default=0,
        help="Keep records for this many days after refresh expiry",
    )
    parser.add_argument("--json", action="store_true", help="JSON output")
    args = parser.parse_args()

    if args.grace_days < 0:
        parser.error("--grace-days must not be negative")

    result = asyncio.run(purge(args.grace_days))

    if args.json:
        print(json.dumps(result))
    else:
        print(f"Deleted {result['deleted']} token records expired before {result['cutoff']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
