"""Benchmark store with history snapshots.

The live ``benchmarks`` table holds current state only. Every update or
delete first copies the pre-change row into ``benchmark_history`` with an
EndDate marking where that version stopped applying:

- update: the caller-supplied start of the new period, or now
- delete: DELETED_END_DATE, meaning "removed, never superseded"

The snapshot and the mutation run in one transaction, so a history row
never exists without its change (or the reverse).
"""
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from . import models, schemas
from .database import transaction
from .errors import NotFoundError

logger = logging.getLogger("backoffice-core.versioning")

DELETED_END_DATE = datetime(2199, 1, 1)

# Columns copied from the live row into a snapshot
SNAPSHOT_FIELDS = (
    "client_id",
    "consultant_id",
    "role",
    "low_range_hours",
    "target_hours",
    "high_range_hours",
    "weekly_hours",
    "bill_rate",
    "calculated_benchmark",
    "effective_date",
    "distribution_type",
)


def snapshot_benchmark(db: Session, benchmark: models.Benchmark, end_date: datetime) -> models.BenchmarkHistory:
    """
    Stage a history row holding the benchmark's current values.

    Caller owns the transaction.

    Args:
        db: Database session
        benchmark: Live benchmark, before any change is applied
        end_date: When this version stopped applying

    Returns:
        The staged history row
    """
    history = models.BenchmarkHistory(
        benchmark_id=benchmark.id,
        end_date=end_date,
        created_on=datetime.utcnow(),
        **{field: getattr(benchmark, field) for field in SNAPSHOT_FIELDS},
    )
    db.add(history)
    return history


def _benchmarks_query(db: Session):
    return db.query(models.Benchmark).options(
        joinedload(models.Benchmark.consultant),
        joinedload(models.Benchmark.client),
    )


def get_benchmark(db: Session, benchmark_id: UUID) -> Optional[models.Benchmark]:
    """Get a benchmark with its consultant and client loaded."""
    return _benchmarks_query(db).filter(models.Benchmark.id == benchmark_id).first()


def get_benchmarks_by_client(db: Session, client_id: UUID) -> list[models.Benchmark]:
    """List a client's benchmarks ordered by role, then consultant name."""
    return (
        _benchmarks_query(db)
        .join(models.Consultant, models.Benchmark.consultant_id == models.Consultant.id)
        .filter(models.Benchmark.client_id == client_id)
        .order_by(models.Benchmark.role, models.Consultant.last_name, models.Consultant.first_name)
        .all()
    )


def get_all_benchmarks(db: Session) -> list[models.Benchmark]:
    """List every benchmark ordered by client name, role, last name, first name."""
    return (
        _benchmarks_query(db)
        .join(models.Client, models.Benchmark.client_id == models.Client.id)
        .join(models.Consultant, models.Benchmark.consultant_id == models.Consultant.id)
        .order_by(
            models.Client.client_name,
            models.Benchmark.role,
            models.Consultant.last_name,
            models.Consultant.first_name,
        )
        .all()
    )


def get_benchmark_history(db: Session, benchmark_id: UUID) -> list[models.BenchmarkHistory]:
    """List the snapshots of a benchmark, most recent EndDate first."""
    return (
        db.query(models.BenchmarkHistory)
        .filter(models.BenchmarkHistory.benchmark_id == benchmark_id)
        .order_by(models.BenchmarkHistory.end_date.desc(), models.BenchmarkHistory.created_on.desc())
        .all()
    )


def create_benchmark(db: Session, benchmark: schemas.BenchmarkCreate) -> models.Benchmark:
    """
    Create a benchmark. Creation writes no history.

    Raises:
        NotFoundError: If the client or consultant does not exist
    """
    if not db.query(models.Client).filter(models.Client.id == benchmark.client_id).first():
        raise NotFoundError(f"Client not found: {benchmark.client_id}")
    if not db.query(models.Consultant).filter(models.Consultant.id == benchmark.consultant_id).first():
        raise NotFoundError(f"Consultant not found: {benchmark.consultant_id}")

    now = datetime.utcnow()
    db_benchmark = models.Benchmark(**benchmark.model_dump(), created_on=now, updated_on=now)
    db.add(db_benchmark)
    db.commit()
    logger.info(f"Created benchmark {db_benchmark.id} ({db_benchmark.role}) for client {db_benchmark.client_id}")
    return get_benchmark(db, db_benchmark.id)


def update_benchmark(db: Session, benchmark_id: UUID, benchmark_update: schemas.BenchmarkUpdate) -> models.Benchmark:
    """
    Snapshot a benchmark into history, then apply the update.

    Args:
        db: Database session
        benchmark_id: Benchmark UUID
        benchmark_update: Fields to change; ``start_date`` becomes the
            snapshot's EndDate (defaults to now)

    Returns:
        Refreshed benchmark with consultant and client loaded

    Raises:
        NotFoundError: If the benchmark does not exist
    """
    db_benchmark = get_benchmark(db, benchmark_id)
    if not db_benchmark:
        raise NotFoundError(f"Benchmark not found: {benchmark_id}")

    update_data = benchmark_update.model_dump(exclude_unset=True)
    end_date = update_data.pop("start_date", None) or datetime.utcnow()

    with transaction(db):
        snapshot_benchmark(db, db_benchmark, end_date)
        db.flush()
        for field, value in update_data.items():
            if value is None and field in ("calculated_benchmark", "distribution_type"):
                continue
            setattr(db_benchmark, field, value)
        db_benchmark.updated_on = datetime.utcnow()

    logger.info(f"Updated benchmark {benchmark_id} (history end {end_date.isoformat()})")
    db.refresh(db_benchmark)
    return db_benchmark


def delete_benchmark(db: Session, benchmark_id: UUID) -> bool:
    """
    Snapshot a benchmark with the deleted sentinel EndDate, then remove it.

    Returns:
        True if deleted, False if not found
    """
    db_benchmark = get_benchmark(db, benchmark_id)
    if not db_benchmark:
        return False

    with transaction(db):
        snapshot_benchmark(db, db_benchmark, DELETED_END_DATE)
        db.flush()
        db.delete(db_benchmark)

    logger.info(f"Deleted benchmark {benchmark_id}")
    return True


def bulk_update_distribution_type(
    db: Session, benchmark_ids: list[UUID], distribution_type: models.DistributionType
) -> list[UUID]:
    """
    Change the distribution type of many benchmarks.

    Each id is snapshotted and updated in its own transaction; ids that do
    not exist are skipped. A failure on one id leaves the earlier ids
    updated and stops processing.

    Returns:
        Ids actually updated, in request order
    """
    updated: list[UUID] = []
    for benchmark_id in benchmark_ids:
        db_benchmark = get_benchmark(db, benchmark_id)
        if not db_benchmark:
            logger.info(f"Skipping unknown benchmark {benchmark_id} in bulk distribution update")
            continue

        with transaction(db):
            snapshot_benchmark(db, db_benchmark, datetime.utcnow())
            db.flush()
            db_benchmark.distribution_type = distribution_type
            db_benchmark.updated_on = datetime.utcnow()
        updated.append(benchmark_id)

    logger.info(f"Bulk distribution update to {distribution_type.value}: {len(updated)} of {len(benchmark_ids)} benchmarks")
    return updated
