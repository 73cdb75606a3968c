"""
Seed the task board with sample tasks for local development
"""
import argparse
import asyncio
import random
import sys
from datetime import timedelta
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from taskboard.db.database import AsyncSessionLocal, engine, init_db
from taskboard.core import tracing
from taskboard.db import crud
from taskboard.db.models import Priority
from taskboard.api.v1.schemas.tasks import TaskCreate
from taskboard.utils.helpers import utc_now
from loguru import logger

SAMPLE_TITLES = [
    "Write release notes",
    "Review pull requests",
    "Update dependencies",
    "Plan sprint backlog",
    "Fix flaky login test",
    "Prepare demo",
    "Reply to support tickets",
    "Refresh staging data",
    "Clean up feature flags",
    "Draft quarterly report",
]


def sample_task(rng: random.Random) -> TaskCreate:
    priority = rng.choice(list(Priority))
    due_date = None
    # High priority tasks always need a due date
    if priority == Priority.HIGH or rng.random() < 0.6:
        due_date = utc_now() + timedelta(days=rng.randint(1, 30), hours=rng.randint(0, 23))

    return TaskCreate(
        title=rng.choice(SAMPLE_TITLES),
        description=rng.choice([None, "Seeded sample task"]),
        priority=priority,
        due_date=due_date
    )


async def seed_tasks(count: int, seed: int = None):
    """Append ``count`` random tasks to the board"""
    rng = random.Random(seed)
    logger.info(f"Seeding {count} tasks...")

    await init_db()
    try:
        async with AsyncSessionLocal() as db:
            tasks = await crud.bulk_create_tasks(db, [sample_task(rng) for _ in range(count)])
            logger.info(f"Created {len(tasks)} tasks at positions {tasks[0].order_index}..{tasks[-1].order_index}")
    except Exception as e:
        logger.error(f"Failed to seed tasks: {e}")
        raise
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed sample tasks")
    parser.add_argument("--count", type=int, default=20, help="number of tasks to create")
    parser.add_argument("--seed", type=int, default=None, help="random seed for repeatable data")
    args = parser.parse_args()

    tracing.setup_structured_logging()
    tracing.set_trace_context(tracing.generate_trace_id(), tracing.generate_span_id())

    asyncio.run(seed_tasks(args.count, args.seed))
