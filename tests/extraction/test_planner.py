"""Tests for worker-count selection, shard planning and domain discovery."""

import random

import pytest

from tablepull.core.errors import ConfigurationError, QueryError
from tablepull.core.models import ExtractionJob
from tablepull.extraction.planner import MIN_WORKERS, available_keys, optimal_workers, plan, select_worker_count


class TestSelectWorkerCount:
    @pytest.mark.parametrize(
        "cores,ceiling,expected",
        [
            (16, 8, 8),
            (8, 8, 6),
            (4, 8, 3),
            (2, 8, 2),
            (1, 8, 2),
            (0, 8, 2),
            (64, 2, 2),
        ],
    )
    def test_examples(self, cores, ceiling, expected):
        assert select_worker_count(cores, ceiling) == expected

    def test_unknown_cores_counts_as_zero(self):
        assert select_worker_count(None, 8) == MIN_WORKERS

    @pytest.mark.parametrize("ceiling", [2, 3, 5, 8, 32])
    def test_bounds_hold_for_any_core_count(self, ceiling):
        for cores in range(0, 200):
            count = select_worker_count(cores, ceiling)
            assert MIN_WORKERS <= count <= ceiling

    @pytest.mark.parametrize("ceiling", [1, 0, -3])
    def test_ceiling_below_two_rejected(self, ceiling):
        with pytest.raises(ConfigurationError):
            select_worker_count(8, ceiling)

    def test_optimal_workers_within_bounds(self):
        assert MIN_WORKERS <= optimal_workers(4) <= 4


class TestPlan:
    def test_even_split(self):
        shards = plan([2020, 2021, 2022, 2023], 2)
        assert [s.keys for s in shards] == [(2020, 2021), (2022, 2023)]
        assert [s.index for s in shards] == [0, 1]

    def test_uneven_split_front_loaded(self):
        shards = plan(list(range(2013, 2023)), 4)
        assert [len(s) for s in shards] == [3, 3, 2, 2]

    def test_fewer_keys_than_workers_skips_empty_bins(self):
        shards = plan([2021, 2022], 5)
        assert [s.keys for s in shards] == [(2021,), (2022,)]
        assert not any(s.is_empty for s in shards)

    def test_empty_domain(self):
        assert plan([], 4) == []

    def test_single_worker(self):
        assert [s.keys for s in plan([1, 2, 3], 1)] == [(1, 2, 3)]

    def test_invalid_worker_count(self):
        with pytest.raises(ConfigurationError):
            plan([1, 2], 0)

    def test_partition_property(self):
        rng = random.Random(7)
        for _ in range(200):
            domain = sorted(rng.sample(range(1900, 2100), rng.randint(0, 60)))
            workers = rng.randint(2, 12)
            shards = plan(domain, workers)

            flattened = [k for s in shards for k in s.keys]
            assert flattened == domain
            assert len(shards) <= workers
            if shards:
                sizes = [len(s) for s in shards]
                assert max(sizes) - min(sizes) <= 1

    def test_deterministic(self):
        domain = list(range(2000, 2025))
        assert plan(domain, 6) == plan(domain, 6)


class TestAvailableKeys:
    def test_distinct_sorted_without_nulls(self, sqlite_provider):
        conn = sqlite_provider.open()
        try:
            job = ExtractionJob("LDS_TRIPS_V", schema="main", partition_column="TRIP_YEAR")
            assert available_keys(conn, job) == [2019, 2021]
        finally:
            sqlite_provider.close(conn)

    def test_sorts_scripted_source(self, scripted, make_rows):
        provider = scripted(make_rows({2023: 1, 2020: 1, 2021: 1}))
        conn = provider.open()
        job = ExtractionJob("LLDS_HDR", partition_column="LANDYR")
        assert available_keys(conn, job) == [2020, 2021, 2023]
        assert conn.queries == ["SELECT DISTINCT LANDYR FROM llds.LLDS_HDR ORDER BY LANDYR"]

    def test_requires_partition_column(self):
        with pytest.raises(ConfigurationError):
            available_keys(object(), ExtractionJob("LLDS_HDR"))

    def test_query_failure_carries_table(self, sqlite_provider):
        conn = sqlite_provider.open()
        try:
            job = ExtractionJob("NO_SUCH", schema="main", partition_column="YR")
            with pytest.raises(QueryError) as exc_info:
                available_keys(conn, job)
            assert exc_info.value.context.table == "NO_SUCH"
        finally:
            sqlite_provider.close(conn)
