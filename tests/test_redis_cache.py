"""Tests for the Redis response cache."""
import asyncio
import pytest
import fakeredis
from unittest.mock import MagicMock

from app.models import AssessmentStatus, ResultsResponse, SixPack
from app.services.redis_cache import CacheKeys, RedisCache


@pytest.fixture
def cache():
    return RedisCache(host="localhost", port=6379, client=fakeredis.FakeRedis(decode_responses=True))


def _results(assessment_id="a-1"):
    return ResultsResponse(
        assessment_id=assessment_id,
        status=AssessmentStatus.SUBMITTED,
        full_version=1,
        scores_by_process=[{"process_key": "COMERCIAL", "band": "LOW", "score": 30}],
        findings=[],
        six_pack=SixPack(vazamentos=[], alavancas=[]),
    )


class TestRedisCache:
    """Tests for RedisCache over fakeredis."""

    def test_set_then_get(self, cache):
        key = CacheKeys.results("a-1")
        assert cache.set(key, _results(), ttl_seconds=60) is True
        cached = cache.get(key, ResultsResponse)
        assert cached == _results()
        assert 0 < cache.client.ttl(key) <= 60

    def test_get_miss(self, cache):
        assert cache.get(CacheKeys.results("missing"), ResultsResponse) is None

    def test_invalidate_assessment(self, cache):
        cache.set(CacheKeys.results("a-1"), _results(), 60)
        cache.set(CacheKeys.snapshot("a-1", 1), _results(), 60)
        cache.set(CacheKeys.snapshot("a-1", 2), _results(), 60)
        cache.set(CacheKeys.company_snapshots("c-1"), _results(), 60)
        cache.set(CacheKeys.results("a-2"), _results("a-2"), 60)

        cache.invalidate_assessment("a-1", "c-1")

        assert cache.client.keys("full:*") == [CacheKeys.results("a-2")]

    def test_errors_are_misses(self):
        client = MagicMock()
        client.get.side_effect = ConnectionError("down")
        client.setex.side_effect = ConnectionError("down")
        cache = RedisCache(host="localhost", port=6379, client=client)
        assert cache.get("k", ResultsResponse) is None
        assert cache.set("k", _results(), 60) is False

    def test_health_check(self, cache):
        assert asyncio.run(cache.health_check()) == (True, None)
