from contextlib import aclosing

import pytest

from point_service.db_context import DatabaseManager, transactional
from point_service.entities import Pageable, Point, PointCriteria, SortOrder
from point_service.errors import WriteConflictError
from point_service.repository import PointRepository

pytestmark = pytest.mark.usefixtures("test_db_pool")

DEFAULT_TITLE = "A" * 20
UPDATED_TITLE = "B" * 20
DEFAULT_DESCRIPTION = "A" * 10
UPDATED_DESCRIPTION = "B" * 10


class TestPointRepositoryOperations:
    """Test CRUD operations against a real PostgreSQL"""

    @pytest.fixture
    def point_repo(self):
        return PointRepository()

    @pytest.fixture
    def sample_points(self):
        return [
            Point(title="Charlie point title!", description="third"),
            Point(title="Alpha point title!!!", description="first"),
            Point(title="Bravo point title!!!", description=None),
        ]

    @pytest.mark.asyncio
    @transactional("test_db")
    async def test_insert_and_find_by_id(self, point_repo):
        created = await point_repo.insert(
            Point(title=DEFAULT_TITLE, description=DEFAULT_DESCRIPTION)
        )

        assert created.id is not None

        found = await point_repo.find_by_id(created.id)
        assert found == Point(id=created.id, title=DEFAULT_TITLE, description=DEFAULT_DESCRIPTION)

    @pytest.mark.asyncio
    @transactional("test_db")
    async def test_insert_rejects_existing_id(self, point_repo):
        with pytest.raises(ValueError, match="already has an id"):
            await point_repo.insert(Point(id=1, title=DEFAULT_TITLE))
        assert await point_repo.count() == 0

    @pytest.mark.asyncio
    @transactional("test_db")
    async def test_find_by_id_not_found(self, point_repo):
        assert await point_repo.find_by_id(9_223_372_036_854_775_807) is None

    @pytest.mark.asyncio
    @transactional("test_db")
    async def test_exists_by_id(self, point_repo):
        created = await point_repo.insert(Point(title=DEFAULT_TITLE))

        assert await point_repo.exists_by_id(created.id) is True
        assert await point_repo.exists_by_id(created.id + 1) is False

    @pytest.mark.asyncio
    @transactional("test_db")
    async def test_find_all_yields_every_point(self, point_repo, sample_points):
        for point in sample_points:
            await point_repo.insert(point)

        titles = [point.title async for point in point_repo.find_all()]

        assert sorted(titles) == sorted(point.title for point in sample_points)

    @pytest.mark.asyncio
    @transactional("test_db")
    async def test_find_all_with_criteria(self, point_repo, sample_points):
        for point in sample_points:
            await point_repo.insert(point)

        found = [
            point async for point in point_repo.find_all(criteria=PointCriteria(description="first"))
        ]

        assert [point.title for point in found] == ["Alpha point title!!!"]

    @pytest.mark.asyncio
    @transactional("test_db")
    async def test_find_all_sorted_and_paged(self, point_repo, sample_points):
        for point in sample_points:
            await point_repo.insert(point)

        first_page = Pageable(page=0, size=2, sort=[("title", SortOrder.ASC)])
        second_page = Pageable(page=1, size=2, sort=[("title", SortOrder.ASC)])

        assert [p.title for p in await point_repo.find_all_as_list(first_page)] == [
            "Alpha point title!!!",
            "Bravo point title!!!",
        ]
        assert [p.title for p in await point_repo.find_all_as_list(second_page)] == [
            "Charlie point title!",
        ]

    @pytest.mark.asyncio
    @transactional("test_db")
    async def test_find_all_runs_query_again_on_each_call(self, point_repo):
        await point_repo.insert(Point(title=DEFAULT_TITLE))
        assert len([p async for p in point_repo.find_all()]) == 1

        await point_repo.insert(Point(title=UPDATED_TITLE))
        assert len([p async for p in point_repo.find_all()]) == 2

    @pytest.mark.asyncio
    @transactional("test_db")
    async def test_find_all_stopped_early_leaves_connection_usable(self, point_repo, sample_points):
        for point in sample_points:
            await point_repo.insert(point)

        seen = []
        async with aclosing(point_repo.find_all()) as points:
            async for point in points:
                seen.append(point)
                break

        assert len(seen) == 1
        assert await point_repo.count() == 3

    @pytest.mark.asyncio
    @transactional("test_db")
    async def test_update_replaces_fields(self, point_repo):
        created = await point_repo.insert(Point(title=DEFAULT_TITLE, description=DEFAULT_DESCRIPTION))

        updated = await point_repo.update(
            Point(id=created.id, title=UPDATED_TITLE, description=None)
        )

        assert updated == 1
        found = await point_repo.find_by_id(created.id)
        assert found.title == UPDATED_TITLE
        assert found.description is None

    @pytest.mark.asyncio
    @transactional("test_db")
    async def test_update_missing_row_affects_nothing(self, point_repo):
        assert await point_repo.update(Point(id=12345, title=DEFAULT_TITLE)) == 0

    @pytest.mark.asyncio
    @transactional("test_db")
    async def test_save_inserts_then_updates(self, point_repo):
        created = await point_repo.save(Point(title=DEFAULT_TITLE))
        assert created.id is not None

        saved = await point_repo.save(
            Point(id=created.id, title=UPDATED_TITLE, description=UPDATED_DESCRIPTION)
        )

        assert saved.id == created.id
        assert await point_repo.count() == 1
        assert (await point_repo.find_by_id(created.id)).description == UPDATED_DESCRIPTION

    @pytest.mark.asyncio
    @transactional("test_db")
    async def test_save_vanished_point_raises_write_conflict(self, point_repo):
        created = await point_repo.insert(Point(title=DEFAULT_TITLE))
        await point_repo.delete_by_id(created.id)

        with pytest.raises(WriteConflictError, match=f"Unable to update Point with id = {created.id}"):
            await point_repo.save(Point(id=created.id, title=UPDATED_TITLE))

    @pytest.mark.asyncio
    @transactional("test_db")
    async def test_delete_is_idempotent(self, point_repo):
        created = await point_repo.insert(Point(title=DEFAULT_TITLE))
        await point_repo.insert(Point(title=UPDATED_TITLE))

        assert await point_repo.delete_by_id(created.id) == 1
        assert await point_repo.delete_by_id(created.id) == 0
        assert await point_repo.count() == 1


class TestPointRepositoryEdgeCases:
    @pytest.fixture
    def point_repo(self):
        return PointRepository()

    @pytest.mark.asyncio
    async def test_methods_require_transaction_context(self, point_repo):
        methods_to_test = [
            (point_repo.find_by_id, 1),
            (point_repo.exists_by_id, 1),
            (point_repo.count,),
            (point_repo.insert, Point(title=DEFAULT_TITLE)),
            (point_repo.update, Point(id=1, title=DEFAULT_TITLE)),
            (point_repo.delete_by_id, 1),
        ]

        for method, *args in methods_to_test:
            with pytest.raises(ValueError, match="No active transaction found"):
                await method(*args)

    @pytest.mark.asyncio
    async def test_find_all_requires_transaction_context(self, point_repo):
        with pytest.raises(ValueError, match="No active transaction found"):
            async for _ in point_repo.find_all():
                pass

    @pytest.mark.asyncio
    async def test_committed_transaction_is_visible_to_the_next(self, point_repo):
        async with DatabaseManager.transaction():
            created = await point_repo.insert(Point(title=DEFAULT_TITLE))

        async with DatabaseManager.transaction():
            assert await point_repo.find_by_id(created.id) is not None

    @pytest.mark.asyncio
    async def test_failed_transaction_rolls_back(self, point_repo):
        with pytest.raises(RuntimeError):
            async with DatabaseManager.transaction():
                await point_repo.insert(Point(title=DEFAULT_TITLE))
                raise RuntimeError("boom")

        async with DatabaseManager.transaction():
            assert await point_repo.count() == 0
