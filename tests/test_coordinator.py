import json

import pytest
from pydantic import ValidationError

from storefront_cache.coordinator import CacheCoordinator
from storefront_cache.keys import KeyScheme
from storefront_cache.schemas import CachedCategory

from conftest import make_category

TTL = 60 * 60 * 24 * 7


@pytest.fixture
def categories(fake_redis, mock_provider):
    return CacheCoordinator(
        fake_redis,
        mock_provider,
        model=CachedCategory,
        keys=KeyScheme("category"),
        ttl=TTL,
        newest_first=True,
    )


def seed(redis, rows):
    for row in rows:
        entity = CachedCategory.model_validate(row)
        redis.store[f"category::{row['id']}"] = entity.model_dump_json()


class TestScan:
    async def test_empty_scope_returns_nothing(self, categories, mock_provider, fake_redis):
        assert await categories.scan() == []
        mock_provider.scan.assert_not_called()
        assert fake_redis.writes == 0

    async def test_count_mismatch_rebuilds(self, categories, mock_provider, fake_redis):
        rows = [make_category("Apparel", 0), make_category("Footwear", 5)]
        mock_provider.count.return_value = 2
        mock_provider.scan.return_value = rows

        result = await categories.scan()

        assert [c.name for c in result] == ["Footwear", "Apparel"]
        assert len(fake_redis.store) == 2
        assert set(fake_redis.ttls.values()) == {TTL}
        assert fake_redis.pipelines == 1
        assert categories.stats["rebuilds"] == 1

    async def test_rebuild_drops_stale_keys(self, categories, mock_provider, fake_redis):
        gone = make_category("Gone")
        seed(fake_redis, [gone])
        kept = make_category("Kept")
        mock_provider.count.return_value = 2
        mock_provider.scan.return_value = [kept]

        result = await categories.scan()

        assert [c.name for c in result] == ["Kept"]
        assert list(fake_redis.store) == [f"category::{kept['id']}"]

    async def test_equal_counts_read_the_cache(self, categories, mock_provider, fake_redis):
        rows = [make_category(f"Category {i}", i) for i in range(5)]
        seed(fake_redis, rows)
        mock_provider.count.return_value = 5

        result = await categories.scan()

        assert len(result) == 5
        assert result[0].name == "Category 4"
        mock_provider.scan.assert_not_called()
        assert fake_redis.writes == 0
        assert categories.stats["hits"] == 1

    async def test_second_scan_skips_rebuild(self, categories, mock_provider, fake_redis):
        rows = [make_category("Apparel"), make_category("Footwear", 1)]
        mock_provider.count.return_value = 2
        mock_provider.scan.return_value = rows

        first = await categories.scan()
        writes = fake_redis.writes
        second = await categories.scan()

        assert first == second
        assert mock_provider.scan.call_count == 1
        assert fake_redis.writes == writes

    async def test_invalid_values_are_dropped(self, categories, mock_provider, fake_redis):
        rows = [make_category("Apparel"), make_category("Footwear", 1)]
        seed(fake_redis, rows)
        fake_redis.store[f"category::{rows[0]['id']}"] = json.dumps({"id": "nope"})
        mock_provider.count.return_value = 2

        result = await categories.scan()

        assert [c.name for c in result] == ["Footwear"]
        assert categories.stats["invalid"] == 1
        mock_provider.scan.assert_not_called()

    async def test_rebuild_with_no_rows(self, categories, mock_provider, fake_redis):
        seed(fake_redis, [make_category("Orphan")])
        mock_provider.count.return_value = 0

        assert await categories.scan() == []
        assert fake_redis.store == {}


class TestGet:
    async def test_hit(self, categories, mock_provider, fake_redis):
        row = make_category()
        seed(fake_redis, [row])

        category = await categories.get(str(row["id"]))

        assert category.id == row["id"]
        mock_provider.get.assert_not_called()

    async def test_miss_reads_through(self, categories, mock_provider, fake_redis):
        row = make_category()
        mock_provider.get.return_value = row

        category = await categories.get(str(row["id"]))

        assert category.name == "Apparel"
        assert f"category::{row['id']}" in fake_redis.store
        assert fake_redis.ttls[f"category::{row['id']}"] == TTL
        assert categories.stats["misses"] == 1

    async def test_absent_everywhere(self, categories, mock_provider):
        assert await categories.get("missing") is None

    async def test_invalid_value_is_refetched(self, categories, mock_provider, fake_redis):
        row = make_category()
        fake_redis.store[f"category::{row['id']}"] = "{not json"
        mock_provider.get.return_value = row

        category = await categories.get(str(row["id"]))

        assert category.id == row["id"]
        mock_provider.get.assert_awaited_once()
        stored = json.loads(fake_redis.store[f"category::{row['id']}"])
        assert stored["name"] == "Apparel"


class TestWrites:
    async def test_batch_validates_before_writing(self, categories, fake_redis):
        good = make_category()
        bad = make_category(name="ab")

        with pytest.raises(ValidationError):
            await categories.batch([good, bad])

        assert fake_redis.store == {}

    async def test_batch_empty(self, categories, fake_redis):
        assert await categories.batch([]) == []
        assert fake_redis.pipelines == 0

    async def test_add_rejects_invalid(self, categories, fake_redis):
        with pytest.raises(ValidationError):
            await categories.add({"id": "not-a-uuid"})
        assert fake_redis.store == {}

    async def test_remove_and_drop(self, categories, fake_redis):
        rows = [make_category("Apparel"), make_category("Footwear")]
        seed(fake_redis, rows)
        fake_redis.store["subcategory::x"] = "{}"

        assert await categories.remove(str(rows[0]["id"])) == 1
        assert await categories.drop() == 1
        assert list(fake_redis.store) == ["subcategory::x"]


def test_stats_hit_rate(categories):
    categories.stats.update(hits=3, misses=1)

    stats = categories.get_stats()

    assert stats.hit_rate == 0.75
    categories.reset_stats()
    assert categories.get_stats().hits == 0
