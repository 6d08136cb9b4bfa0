from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from vconn import models
from vconn.api.deps import http_error_for, request_id_of, require_roles
from vconn.database import get_db
from vconn.schemas import (
    ContractCreate,
    ContractRead,
    ContractUpdate,
    DeliveryRead,
    OrderRead,
    WholesalerContractRead,
    WholesalerStatsRead,
)
from vconn.services import contract_registry, delivery_aggregator, order_lifecycle
from vconn.services.audit import audit_event

router = APIRouter(prefix="/wholesaler", tags=["wholesaler"])

_WHOLESALER_DEP = Depends(require_roles(models.UserRole.wholesaler))


@router.get("/dashboard", response_model=WholesalerStatsRead)
def wholesaler_dashboard(
    db: Session = Depends(get_db),
    current_user: models.User = _WHOLESALER_DEP,
):
    return WholesalerStatsRead.model_validate(
        delivery_aggregator.wholesaler_stats(db, wholesaler_id=current_user.id)
    )


@router.get("/stats", response_model=WholesalerStatsRead)
def wholesaler_stats(
    db: Session = Depends(get_db),
    current_user: models.User = _WHOLESALER_DEP,
):
    return WholesalerStatsRead.model_validate(
        delivery_aggregator.wholesaler_stats(db, wholesaler_id=current_user.id)
    )


@router.get("/contracts", response_model=List[WholesalerContractRead])
def wholesaler_contracts(
    db: Session = Depends(get_db),
    current_user: models.User = _WHOLESALER_DEP,
):
    rows = contract_registry.list_by_wholesaler(db, wholesaler_id=current_user.id)
    return [
        WholesalerContractRead(
            **ContractRead.model_validate(row.contract).model_dump(),
            accepted_vendors=row.accepted_vendors,
            total_orders=row.total_orders,
        )
        for row in rows
    ]


@router.get("/deliveries", response_model=List[DeliveryRead])
def wholesaler_deliveries(
    day: Optional[date] = Query(None, alias="date"),
    db: Session = Depends(get_db),
    current_user: models.User = _WHOLESALER_DEP,
):
    if day is None:
        return delivery_aggregator.today_deliveries(db, wholesaler_id=current_user.id)
    return delivery_aggregator.deliveries_by_date(db, wholesaler_id=current_user.id, day=day)


@router.post("/contracts", response_model=ContractRead, status_code=status.HTTP_201_CREATED)
def create_contract(
    payload: ContractCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = _WHOLESALER_DEP,
):
    wholesaler_id = current_user.id
    contract = contract_registry.create(
        db, wholesaler_id=wholesaler_id, fields=payload.model_dump()
    )
    audit_event(
        "contract.created",
        wholesaler_id,
        {"contract_id": contract.id, "product_name": contract.product_name},
        db=db,
        request_id=request_id_of(request),
    )
    return contract


@router.put("/contracts/{contract_id}", response_model=ContractRead)
def update_contract(
    contract_id: int,
    payload: ContractUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = _WHOLESALER_DEP,
):
    wholesaler_id = current_user.id
    outcome = contract_registry.update_by_wholesaler(
        db,
        contract_id=contract_id,
        wholesaler_id=wholesaler_id,
        fields=payload.model_dump(exclude_unset=True),
    )
    if not outcome.ok:
        raise http_error_for(outcome.error)
    if not outcome.value.updated:
        # Missing and foreign contracts both affect zero rows.
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contract not found")
    audit_event(
        "contract.updated",
        wholesaler_id,
        {"contract_id": contract_id, "fields": sorted(payload.model_dump(exclude_unset=True))},
        db=db,
        request_id=request_id_of(request),
    )
    return outcome.value.contract


@router.post("/contracts/{contract_id}/deactivate", response_model=ContractRead)
def deactivate_contract(
    contract_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = _WHOLESALER_DEP,
):
    wholesaler_id = current_user.id
    result = contract_registry.deactivate_by_wholesaler(
        db, contract_id=contract_id, wholesaler_id=wholesaler_id
    )
    if not result.updated:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contract not found")
    audit_event(
        "contract.deactivated",
        wholesaler_id,
        {"contract_id": contract_id},
        db=db,
        request_id=request_id_of(request),
    )
    return result.contract


@router.post("/orders/{order_id}/delivered", response_model=OrderRead)
def mark_order_delivered(
    order_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = _WHOLESALER_DEP,
):
    wholesaler_id = current_user.id
    order = order_lifecycle.mark_delivered(db, order_id=order_id, wholesaler_id=wholesaler_id)
    if order is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Order not found or not deliverable"
        )
    audit_event(
        "order.delivered",
        wholesaler_id,
        {"order_id": order_id},
        db=db,
        request_id=request_id_of(request),
    )
    return order
