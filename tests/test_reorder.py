"""
Ordering tests: append positions, moves, compaction and atomicity
"""
import asyncio
import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from taskboard.api.v1.schemas.tasks import TaskCreate
from taskboard.core.config import settings
from taskboard.db import crud
from taskboard.db.crud import task as task_crud
from taskboard.db.database import Base
from taskboard.db.models import Priority
from taskboard.exceptions.errors import TaskNotFoundError

TASKS_URL = "/api/tasks"
REORDER_URL = "/api/tasks/reorder"


@pytest.fixture
async def five_tasks(create_tasks):
    tasks = await create_tasks("A", "B", "C", "D", "E")
    return {task["title"]: task["id"] for task in tasks}


class TestAppend:
    """New tasks go to the end of the board"""

    async def test_positions_are_dense_from_zero(self, client: AsyncClient, create_tasks, board_indexes):
        created = await create_tasks("first", "second", "third")

        assert [task["orderIndex"] for task in created] == [0, 1, 2]
        assert await board_indexes() == [0, 1, 2]

    async def test_append_after_delete(self, client: AsyncClient, five_tasks, board_indexes, task_payload):
        response = await client.delete(f"{TASKS_URL}/{five_tasks['B']}")
        assert response.status_code == 204

        response = await client.post(TASKS_URL, json=task_payload("F"))
        assert response.json()["orderIndex"] == 4
        assert await board_indexes() == [0, 1, 2, 3, 4]

    async def test_bulk_create_takes_consecutive_positions(self, client: AsyncClient, create_tasks, task_payload, board_titles):
        await create_tasks("existing")

        response = await client.post(
            f"{TASKS_URL}/bulk",
            json={"tasks": [task_payload("x"), task_payload("y"), task_payload("z")]}
        )

        assert response.status_code == 201
        assert [task["orderIndex"] for task in response.json()] == [1, 2, 3]
        assert await board_titles() == ["existing", "x", "y", "z"]


class TestReorder:
    """Moving a task shifts only the tasks between old and new position"""

    async def test_move_later(self, client: AsyncClient, five_tasks, board_titles, board_indexes):
        response = await client.post(REORDER_URL, json={"taskId": five_tasks["A"], "newOrderIndex": 3})

        assert response.status_code == 204
        assert await board_titles() == ["B", "C", "D", "A", "E"]
        assert await board_indexes() == [0, 1, 2, 3, 4]

    async def test_move_earlier(self, client: AsyncClient, five_tasks, board_titles, board_indexes):
        response = await client.post(REORDER_URL, json={"taskId": five_tasks["E"], "newOrderIndex": 1})

        assert response.status_code == 204
        assert await board_titles() == ["A", "E", "B", "C", "D"]
        assert await board_indexes() == [0, 1, 2, 3, 4]

    async def test_move_to_same_position_changes_nothing(self, client: AsyncClient, five_tasks, db_session, board_titles):
        before = await crud.get_task_by_id(db_session, uuid.UUID(five_tasks["C"]))
        updated_at = before.updated_at

        response = await client.post(REORDER_URL, json={"taskId": five_tasks["C"], "newOrderIndex": 2})

        assert response.status_code == 204
        assert await board_titles() == ["A", "B", "C", "D", "E"]
        after = await crud.get_task_by_id(db_session, uuid.UUID(five_tasks["C"]))
        assert after.updated_at == updated_at

    async def test_move_to_ends(self, client: AsyncClient, five_tasks, board_titles):
        await client.post(REORDER_URL, json={"taskId": five_tasks["C"], "newOrderIndex": 0})
        assert await board_titles() == ["C", "A", "B", "D", "E"]

        await client.post(REORDER_URL, json={"taskId": five_tasks["C"], "newOrderIndex": 4})
        assert await board_titles() == ["A", "B", "D", "E", "C"]

    async def test_list_follows_new_order(self, client: AsyncClient, five_tasks):
        await client.post(REORDER_URL, json={"taskId": five_tasks["D"], "newOrderIndex": 0})

        response = await client.get(TASKS_URL)
        items = response.json()["items"]
        assert [item["title"] for item in items] == ["D", "A", "B", "C", "E"]
        assert [item["orderIndex"] for item in items] == [0, 1, 2, 3, 4]

    async def test_unknown_task_is_404_and_nothing_moves(self, client: AsyncClient, five_tasks, board_titles):
        response = await client.post(REORDER_URL, json={"taskId": str(uuid.uuid4()), "newOrderIndex": 0})

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"
        assert await board_titles() == ["A", "B", "C", "D", "E"]

    @pytest.mark.parametrize("body", [
        {"taskId": "not-a-uuid", "newOrderIndex": 0},
        {"newOrderIndex": 0},
        {"taskId": "00000000-0000-0000-0000-000000000000", "newOrderIndex": -1},
        {"taskId": "00000000-0000-0000-0000-000000000000", "newOrderIndex": "first"},
    ])
    async def test_malformed_request_is_422(self, client: AsyncClient, body):
        response = await client.post(REORDER_URL, json=body)
        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_target_past_end_is_clamped(self, client: AsyncClient, five_tasks, board_titles, board_indexes):
        response = await client.post(REORDER_URL, json={"taskId": five_tasks["B"], "newOrderIndex": 99})

        assert response.status_code == 204
        assert await board_titles() == ["A", "C", "D", "E", "B"]
        assert await board_indexes() == [0, 1, 2, 3, 4]

    async def test_target_past_end_without_clamping(self, client: AsyncClient, five_tasks, monkeypatch, db_session):
        monkeypatch.setattr(settings, "CLAMP_REORDER_INDEX", False)

        response = await client.post(REORDER_URL, json={"taskId": five_tasks["B"], "newOrderIndex": 99})

        assert response.status_code == 204
        moved = await crud.get_task_by_id(db_session, uuid.UUID(five_tasks["B"]))
        assert moved.order_index == 99
        report = await crud.find_order_index_anomalies(db_session)
        assert not report["is_dense"]
        assert report["out_of_range"] == [99]


class TestAtomicity:
    """A failed move leaves every position as it was"""

    async def test_failure_after_shift_rolls_back(self, five_tasks, db_session, board_titles, board_indexes, monkeypatch):
        async def failing_set_order_index(db, task_id, order_index):
            raise OperationalError("UPDATE tasks", {}, Exception("disk I/O error"))

        monkeypatch.setattr(task_crud, "_set_order_index", failing_set_order_index)

        with pytest.raises(OperationalError):
            await crud.reorder_task(db_session, uuid.UUID(five_tasks["A"]), 3)

        assert await board_titles() == ["A", "B", "C", "D", "E"]
        assert await board_indexes() == [0, 1, 2, 3, 4]

    async def test_unknown_task_raises_before_any_shift(self, five_tasks, db_session, board_indexes):
        with pytest.raises(TaskNotFoundError):
            await crud.reorder_task(db_session, uuid.uuid4(), 0)

        assert await board_indexes() == [0, 1, 2, 3, 4]

    async def test_returns_final_position(self, five_tasks, db_session):
        assert await crud.reorder_task(db_session, uuid.UUID(five_tasks["A"]), 2) == 2
        assert await crud.reorder_task(db_session, uuid.UUID(five_tasks["A"]), 50) == 4


class TestCompaction:
    """Deletes close the gaps they leave"""

    async def test_delete_shifts_later_tasks_up(self, client: AsyncClient, five_tasks, board_titles, board_indexes):
        response = await client.delete(f"{TASKS_URL}/{five_tasks['B']}")

        assert response.status_code == 204
        assert await board_titles() == ["A", "C", "D", "E"]
        assert await board_indexes() == [0, 1, 2, 3]

    async def test_delete_without_compaction_leaves_gap(self, client: AsyncClient, five_tasks, monkeypatch, db_session, board_indexes):
        monkeypatch.setattr(settings, "COMPACT_ORDER_ON_DELETE", False)

        await client.delete(f"{TASKS_URL}/{five_tasks['B']}")

        assert await board_indexes() == [0, 2, 3, 4]
        report = await crud.find_order_index_anomalies(db_session)
        assert report["missing"] == [1]

    async def test_bulk_delete_renumbers(self, client: AsyncClient, five_tasks, board_titles, board_indexes):
        response = await client.request(
            "DELETE", f"{TASKS_URL}/bulk",
            json={"taskIds": [five_tasks["A"], five_tasks["D"]]}
        )

        assert response.status_code == 204
        assert await board_titles() == ["B", "C", "E"]
        assert await board_indexes() == [0, 1, 2]

    async def test_repair_restores_dense_positions(self, five_tasks, db_session, board_titles, board_indexes):
        await crud.delete_task(db_session, uuid.UUID(five_tasks["A"]), compact=False)
        await crud.delete_task(db_session, uuid.UUID(five_tasks["C"]), compact=False)
        assert await board_indexes() == [1, 3, 4]

        moved = await crud.compact_order_indexes(db_session)

        assert moved == 3
        assert await board_indexes() == [0, 1, 2]
        assert await board_titles() == ["B", "D", "E"]
        assert (await crud.find_order_index_anomalies(db_session))["is_dense"]

    async def test_moves_stay_consistent_after_compaction(self, client: AsyncClient, five_tasks, board_titles, board_indexes):
        await client.delete(f"{TASKS_URL}/{five_tasks['C']}")
        await client.post(REORDER_URL, json={"taskId": five_tasks["E"], "newOrderIndex": 0})

        assert await board_titles() == ["E", "A", "B", "D"]
        assert await board_indexes() == [0, 1, 2, 3]


class TestConcurrency:
    """Independent sessions moving and appending at once keep positions dense"""

    WORKERS = 6
    ROUNDS = 8
    SEEDED = 12

    @pytest.fixture
    async def session_factory(self, tmp_path):
        engine = create_async_engine(
            f"sqlite+aiosqlite:///{tmp_path / 'board.db'}",
            connect_args={"timeout": 30}
        )
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

        await engine.dispose()

    @pytest.fixture
    async def seeded_ids(self, session_factory):
        async with session_factory() as session:
            tasks = await crud.bulk_create_tasks(session, [
                TaskCreate(title=f"seed {i}", priority=Priority.MEDIUM) for i in range(self.SEEDED)
            ])
            return [task.id for task in tasks]

    async def test_interleaved_moves_and_appends(self, session_factory, seeded_ids):
        appended = []

        async def worker(number: int):
            async with session_factory() as session:
                for step in range(self.ROUNDS):
                    if (number + step) % 3 == 0:
                        task = await crud.create_task(
                            session, TaskCreate(title=f"worker {number} step {step}", priority=Priority.LOW)
                        )
                        appended.append(task.order_index)
                    else:
                        task_id = seeded_ids[(number * 5 + step) % len(seeded_ids)]
                        await crud.reorder_task(session, task_id, (number + step * 3) % self.SEEDED)
                    await asyncio.sleep(0)

        await asyncio.gather(*(worker(number) for number in range(self.WORKERS)))

        async with session_factory() as session:
            report = await crud.find_order_index_anomalies(session)

        assert appended
        assert len(set(appended)) == len(appended)
        assert report["total"] == self.SEEDED + len(appended)
        assert report["is_dense"], report

    async def test_concurrent_appends_take_distinct_positions(self, session_factory, seeded_ids):
        async def append(number: int) -> int:
            async with session_factory() as session:
                task = await crud.create_task(session, TaskCreate(title=f"append {number}", priority=Priority.LOW))
                return task.order_index

        positions = await asyncio.gather(*(append(number) for number in range(10)))

        assert sorted(positions) == list(range(self.SEEDED, self.SEEDED + 10))
