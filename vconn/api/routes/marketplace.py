from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from vconn import models
from vconn.api.deps import get_current_user
from vconn.database import get_db
from vconn.schemas import ContractRead, OrderRead
from vconn.services import contract_registry, order_lifecycle

router = APIRouter(tags=["marketplace"])


@router.get("/contracts/search", response_model=List[ContractRead])
def search_contracts(
    query: Optional[str] = Query(None, max_length=120),
    location: Optional[str] = Query(None, max_length=120),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return contract_registry.search(db, text=query, location=location)


@router.get("/contracts/{contract_id}", response_model=ContractRead)
def get_contract(
    contract_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    contract = contract_registry.get(db, contract_id)
    if not contract:
        raise HTTPException(status_code=404, detail="Contract not found")
    return contract


@router.get("/orders/{order_id}", response_model=OrderRead)
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    order = order_lifecycle.get_order(db, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order
