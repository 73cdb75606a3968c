"""
Database connectivity and task ordering check.

Reports task counts and any order_index gaps or duplicates; with
--repair, renumbers positions to 0..N-1 keeping the current order.
"""
import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from taskboard.db.database import AsyncSessionLocal, engine, init_db, ping_db
from taskboard.core import tracing
from taskboard.db import crud
from loguru import logger


async def check_database(repair: bool = False) -> bool:
    """Check connectivity and ordering; returns True when the ordering is dense"""
    logger.info("Checking database connectivity...")

    try:
        await init_db()
        async with AsyncSessionLocal() as db:
            await ping_db(db)
            logger.info("Database connection successful")

            stats = await crud.get_task_statistics(db)
            logger.info("Task statistics:")
            logger.info(f"   Total: {stats.total}")
            logger.info(f"   Completed: {stats.completed}")
            logger.info(f"   Pending: {stats.pending} ({stats.overdue} overdue)")
            for breakdown in stats.by_priority:
                logger.info(f"   {breakdown.label} priority: {breakdown.count}")

            report = await crud.find_order_index_anomalies(db)
            if report["is_dense"]:
                logger.info(f"Task ordering is dense (0..{report['total'] - 1})")
                return True

            logger.warning(
                f"Task ordering anomalies: missing={report['missing']} "
                f"duplicates={report['duplicates']} out_of_range={report['out_of_range']}"
            )
            if not repair:
                logger.info("Run with --repair to renumber positions")
                return False

            moved = await crud.compact_order_indexes(db)
            logger.info(f"Repaired ordering, {moved} tasks renumbered")
            return True

    except Exception as e:
        logger.error(f"Database check failed: {e}")
        raise
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--repair", action="store_true", help="renumber order_index to 0..N-1")
    args = parser.parse_args()

    tracing.setup_structured_logging()
    tracing.set_trace_context(tracing.generate_trace_id(), tracing.generate_span_id())

    ok = asyncio.run(check_database(repair=args.repair))
    sys.exit(0 if ok else 1)
