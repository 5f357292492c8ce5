"""Contract API endpoints."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ... import crud, schemas
from ...database import get_db

router = APIRouter(tags=["contracts"])


@router.get("", response_model=list[schemas.ContractResponse])
def list_contracts(
    client_id: Optional[UUID] = Query(None, alias="ClientID", description="Filter by client"),
    db: Session = Depends(get_db),
):
    """List contracts, newest start date first."""
    return crud.get_contracts(db, client_id=client_id)


@router.post("", response_model=schemas.ContractResponse, status_code=201)
def create_contract(contract: schemas.ContractCreate, db: Session = Depends(get_db)):
    """
    Create a contract.

    Staff slots (**AssignedCFO**, **AssignedController**,
    **AssignedSeniorAccountant**, **AssignedSoftware**) hold display names;
    **AdditionalStaff** is a JSON array of {name, role, rate}.
    """
    return crud.create_contract(db, contract)


@router.get("/{contract_id}", response_model=schemas.ContractResponse)
def get_contract(contract_id: UUID, db: Session = Depends(get_db)):
    """Get a contract by ID."""
    contract = crud.get_contract(db, contract_id)
    if not contract:
        raise HTTPException(status_code=404, detail="Contract not found")
    return contract
