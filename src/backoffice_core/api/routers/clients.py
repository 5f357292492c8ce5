"""Client API endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ... import crud, schemas
from ...database import get_db

router = APIRouter(tags=["clients"])


@router.get("", response_model=list[schemas.ClientResponse])
def list_clients(db: Session = Depends(get_db)):
    """List clients ordered by name."""
    return crud.get_clients(db)


@router.post("", response_model=schemas.ClientResponse, status_code=201)
def create_client(client: schemas.ClientCreate, db: Session = Depends(get_db)):
    """Create a client."""
    return crud.create_client(db, client)


@router.get("/{client_id}", response_model=schemas.ClientResponse)
def get_client(client_id: UUID, db: Session = Depends(get_db)):
    """Get a client by ID."""
    client = crud.get_client(db, client_id)
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")
    return client
