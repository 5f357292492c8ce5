"""Benchmark API endpoints. Updates and deletes write history first."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ... import models, schemas, versioning
from ...database import get_db

logger = logging.getLogger("backoffice-core.benchmarks")

router = APIRouter(tags=["benchmarks"])


def _benchmark_to_response(benchmark: models.Benchmark) -> schemas.BenchmarkResponse:
    """Convert a Benchmark to its response, with consultant and client names."""
    response = schemas.BenchmarkResponse.model_validate(benchmark)
    if benchmark.consultant is not None:
        response.consultant_name = benchmark.consultant.display_name
    if benchmark.client is not None:
        response.client_name = benchmark.client.client_name
    return response


@router.get("/all", response_model=list[schemas.BenchmarkResponse])
def list_all_benchmarks(db: Session = Depends(get_db)):
    """List every benchmark ordered by client name, role and consultant name."""
    return [_benchmark_to_response(b) for b in versioning.get_all_benchmarks(db)]


@router.get("/client/{client_id}", response_model=list[schemas.BenchmarkResponse])
def list_client_benchmarks(client_id: UUID, db: Session = Depends(get_db)):
    """List a client's benchmarks."""
    return [_benchmark_to_response(b) for b in versioning.get_benchmarks_by_client(db, client_id)]


@router.post("/bulk-update-distribution", response_model=schemas.BulkDistributionResult)
def bulk_update_distribution(request: schemas.BulkDistributionUpdate, db: Session = Depends(get_db)):
    """
    Change the distribution type of several benchmarks.

    - **benchmarkIds**: List of benchmark UUIDs; unknown ids are skipped
    - **distributionType**: linear, front_loaded, back_loaded, u_shaped or custom

    Each benchmark is snapshotted and updated on its own; the batch is not atomic.
    """
    updated = versioning.bulk_update_distribution_type(db, request.benchmark_ids, request.distribution_type)
    return schemas.BulkDistributionResult(updated=len(updated), benchmark_ids=updated)


@router.get("/{benchmark_id}", response_model=schemas.BenchmarkResponse)
def get_benchmark(benchmark_id: UUID, db: Session = Depends(get_db)):
    """Get a benchmark by ID."""
    benchmark = versioning.get_benchmark(db, benchmark_id)
    if not benchmark:
        raise HTTPException(status_code=404, detail="Benchmark not found")
    return _benchmark_to_response(benchmark)


@router.get("/{benchmark_id}/history", response_model=list[schemas.BenchmarkHistoryResponse])
def get_benchmark_history(benchmark_id: UUID, db: Session = Depends(get_db)):
    """List history snapshots of a benchmark, most recent EndDate first."""
    return versioning.get_benchmark_history(db, benchmark_id)


@router.post("", response_model=schemas.BenchmarkResponse, status_code=201)
def create_benchmark(benchmark: schemas.BenchmarkCreate, db: Session = Depends(get_db)):
    """
    Create a benchmark.

    - **ClientID** / **ConsultantID**: required
    - **Role**, **LowRangeHours**, **TargetHours**, **HighRangeHours**,
      **WeeklyHours**, **BillRate**, **EffectiveDate**: optional
    - **DistributionType**: defaults to linear
    """
    return _benchmark_to_response(versioning.create_benchmark(db, benchmark))


@router.put("/{benchmark_id}", response_model=schemas.BenchmarkResponse)
def update_benchmark(
    benchmark_id: UUID,
    benchmark_update: schemas.BenchmarkUpdate,
    db: Session = Depends(get_db),
):
    """
    Update a benchmark.

    The current values are copied to history with EndDate = **StartDate**
    (or now) before the change is applied.
    """
    return _benchmark_to_response(versioning.update_benchmark(db, benchmark_id, benchmark_update))


@router.delete("/{benchmark_id}", status_code=204)
def delete_benchmark(benchmark_id: UUID, db: Session = Depends(get_db)):
    """Delete a benchmark after archiving it to history."""
    if not versioning.delete_benchmark(db, benchmark_id):
        raise HTTPException(status_code=404, detail="Benchmark not found")
