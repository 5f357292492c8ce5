"""Tests for benchmark versioning and history snapshots."""
from datetime import date, datetime
from uuid import uuid4

import pytest
from backoffice_core import schemas, versioning
from backoffice_core.errors import NotFoundError
from backoffice_core.models import BenchmarkHistory, DistributionType


@pytest.fixture
def benchmark(db, acme, consultant):
    return versioning.create_benchmark(db, schemas.BenchmarkCreate(
        client_id=acme.id,
        consultant_id=consultant.id,
        role="Controller",
        low_range_hours=10,
        target_hours=20,
        high_range_hours=30,
        bill_rate=150,
        effective_date=date(2024, 1, 1),
    ))


class TestCreateBenchmark:
    """Test benchmark creation."""

    def test_create_writes_no_history(self, db, benchmark):
        """Test that creation does not snapshot."""
        assert versioning.get_benchmark_history(db, benchmark.id) == []
        assert benchmark.distribution_type == DistributionType.LINEAR
        assert benchmark.client.client_name == "Acme Corp"

    def test_create_requires_client(self, db, consultant):
        """Test that an unknown client is rejected."""
        with pytest.raises(NotFoundError):
            versioning.create_benchmark(db, schemas.BenchmarkCreate(
                client_id=uuid4(), consultant_id=consultant.id
            ))


class TestUpdateBenchmark:
    """Test snapshot-then-update."""

    def test_update_snapshots_previous_values(self, db, benchmark):
        """Test that the history row holds the pre-update values."""
        start = datetime(2024, 3, 1)
        versioning.update_benchmark(db, benchmark.id, schemas.BenchmarkUpdate(
            target_hours=25, start_date=start
        ))

        history = versioning.get_benchmark_history(db, benchmark.id)
        assert len(history) == 1
        snapshot = history[0]
        assert snapshot.target_hours == 20
        assert snapshot.low_range_hours == 10
        assert snapshot.role == "Controller"
        assert snapshot.end_date == start

        current = versioning.get_benchmark(db, benchmark.id)
        assert current.target_hours == 25
        assert current.low_range_hours == 10

    def test_each_update_adds_one_snapshot(self, db, benchmark):
        """Test that N updates produce N history rows."""
        for target in (21, 22, 23):
            versioning.update_benchmark(db, benchmark.id, schemas.BenchmarkUpdate(target_hours=target))
        history = versioning.get_benchmark_history(db, benchmark.id)
        assert len(history) == 3
        assert sorted(h.target_hours for h in history) == [20, 21, 22]

    def test_end_date_defaults_to_now(self, db, benchmark):
        """Test that a missing StartDate stamps the snapshot with the current time."""
        before = datetime.utcnow()
        versioning.update_benchmark(db, benchmark.id, schemas.BenchmarkUpdate(role="Senior Controller"))
        snapshot = versioning.get_benchmark_history(db, benchmark.id)[0]
        assert snapshot.end_date >= before

    def test_update_missing_benchmark(self, db):
        """Test that updating an unknown benchmark raises and writes no history."""
        missing = uuid4()
        with pytest.raises(NotFoundError):
            versioning.update_benchmark(db, missing, schemas.BenchmarkUpdate(target_hours=1))
        assert db.query(BenchmarkHistory).count() == 0


class TestDeleteBenchmark:
    """Test archive-then-delete."""

    def test_delete_uses_sentinel_end_date(self, db, benchmark):
        """Test that deletion archives the row with the far-future EndDate."""
        benchmark_id = benchmark.id
        assert versioning.delete_benchmark(db, benchmark_id) is True

        assert versioning.get_benchmark(db, benchmark_id) is None
        history = versioning.get_benchmark_history(db, benchmark_id)
        assert len(history) == 1
        assert history[0].end_date == versioning.DELETED_END_DATE
        assert history[0].target_hours == 20

    def test_delete_missing_benchmark(self, db):
        """Test that deleting an unknown benchmark reports False."""
        assert versioning.delete_benchmark(db, uuid4()) is False


class TestBulkDistributionUpdate:
    """Test bulk distribution type changes."""

    def test_bulk_skips_unknown_ids(self, db, benchmark):
        """Test that missing ids are skipped and existing ones snapshotted."""
        missing = uuid4()
        updated = versioning.bulk_update_distribution_type(
            db, [missing, benchmark.id], DistributionType.FRONT_LOADED
        )
        assert updated == [benchmark.id]
        assert versioning.get_benchmark(db, benchmark.id).distribution_type == DistributionType.FRONT_LOADED

        history = versioning.get_benchmark_history(db, benchmark.id)
        assert len(history) == 1
        assert history[0].distribution_type == DistributionType.LINEAR


class TestFailedWritesRollBack:
    """Test that a failed snapshot-then-change leaves no partial writes."""

    def test_failed_update_keeps_live_row_and_history(self, db, benchmark, fail_commits):
        """Test that a refused commit discards both the snapshot and the change."""
        fail_commits()
        with pytest.raises(RuntimeError, match="commit refused"):
            versioning.update_benchmark(db, benchmark.id, schemas.BenchmarkUpdate(target_hours=25))

        assert db.query(BenchmarkHistory).count() == 0
        assert versioning.get_benchmark(db, benchmark.id).target_hours == 20

    def test_failed_delete_keeps_live_row(self, db, benchmark, fail_commits):
        """Test that a refused commit leaves the benchmark in place and unarchived."""
        fail_commits()
        with pytest.raises(RuntimeError, match="commit refused"):
            versioning.delete_benchmark(db, benchmark.id)

        assert db.query(BenchmarkHistory).count() == 0
        assert versioning.get_benchmark(db, benchmark.id) is not None

    def test_bulk_failure_keeps_earlier_ids(self, db, acme, consultant, benchmark, fail_commits):
        """Test that a failure on a later id leaves the earlier ids applied."""
        second = versioning.create_benchmark(db, schemas.BenchmarkCreate(
            client_id=acme.id, consultant_id=consultant.id, role="CFO", target_hours=8
        ))

        fail_commits(skip=1)
        with pytest.raises(RuntimeError, match="commit refused"):
            versioning.bulk_update_distribution_type(
                db, [benchmark.id, second.id], DistributionType.BACK_LOADED
            )

        assert versioning.get_benchmark(db, benchmark.id).distribution_type == DistributionType.BACK_LOADED
        assert len(versioning.get_benchmark_history(db, benchmark.id)) == 1
        assert versioning.get_benchmark(db, second.id).distribution_type == DistributionType.LINEAR
        assert versioning.get_benchmark_history(db, second.id) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
