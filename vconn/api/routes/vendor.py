from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from vconn import models
from vconn.api.deps import http_error_for, request_id_of, require_roles
from vconn.database import get_db
from vconn.schemas import (
    AcceptedContractRead,
    ContractRead,
    OrderCreate,
    OrderRead,
    VendorContractsResponse,
    VendorOrdersResponse,
    VendorStatsRead,
)
from vconn.services import (
    contract_registry,
    delivery_aggregator,
    order_lifecycle,
    quota_ledger,
)
from vconn.services.audit import audit_event

router = APIRouter(prefix="/vendor", tags=["vendor"])

_VENDOR_DEP = Depends(require_roles(models.UserRole.vendor))


@router.get("/dashboard", response_model=VendorStatsRead)
def vendor_dashboard(
    db: Session = Depends(get_db),
    current_user: models.User = _VENDOR_DEP,
):
    return VendorStatsRead.model_validate(
        delivery_aggregator.vendor_stats(db, vendor_id=current_user.id)
    )


@router.get("/stats", response_model=VendorStatsRead)
def vendor_stats(
    db: Session = Depends(get_db),
    current_user: models.User = _VENDOR_DEP,
):
    return VendorStatsRead.model_validate(
        delivery_aggregator.vendor_stats(db, vendor_id=current_user.id)
    )


@router.get("/contracts", response_model=VendorContractsResponse)
def vendor_contracts(
    db: Session = Depends(get_db),
    current_user: models.User = _VENDOR_DEP,
):
    available = contract_registry.available_for(db, vendor_id=current_user.id)
    accepted = contract_registry.list_by_vendor(db, vendor_id=current_user.id)
    return VendorContractsResponse(
        available=[ContractRead.model_validate(c) for c in available],
        accepted=[
            AcceptedContractRead(
                **ContractRead.model_validate(row.contract).model_dump(),
                accepted_at=row.accepted_at,
            )
            for row in accepted
        ],
    )


@router.get("/orders", response_model=VendorOrdersResponse)
def vendor_orders(
    db: Session = Depends(get_db),
    current_user: models.User = _VENDOR_DEP,
):
    quotas = quota_ledger.snapshot(db, current_user.id)
    return VendorOrdersResponse(
        orders=[
            OrderRead.model_validate(o)
            for o in order_lifecycle.list_by_vendor(db, vendor_id=current_user.id)
        ],
        free_attempts_remaining=quotas.free_attempts_remaining,
        cancellations_remaining=quotas.cancellations_remaining,
    )


@router.post("/contracts/{contract_id}/accept", response_model=ContractRead)
def accept_contract(
    contract_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = _VENDOR_DEP,
):
    vendor_id = current_user.id
    outcome = contract_registry.accept_by_vendor(db, contract_id=contract_id, vendor_id=vendor_id)
    if not outcome.ok:
        raise http_error_for(outcome.error)
    audit_event(
        "contract.accepted",
        vendor_id,
        {"contract_id": contract_id},
        db=db,
        request_id=request_id_of(request),
    )
    return outcome.value


@router.post("/orders", response_model=OrderRead, status_code=status.HTTP_201_CREATED)
def place_order(
    payload: OrderCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = _VENDOR_DEP,
):
    vendor_id = current_user.id
    outcome = order_lifecycle.place_order(
        db,
        vendor_id=vendor_id,
        contract_id=payload.contract_id,
        quantity=payload.quantity,
    )
    if not outcome.ok:
        raise http_error_for(outcome.error)
    order = outcome.value
    audit_event(
        "order.placed",
        vendor_id,
        {
            "order_id": order.id,
            "contract_id": order.contract_id,
            "quantity": order.quantity,
            "total_amount": order.total_amount,
        },
        db=db,
        request_id=request_id_of(request),
    )
    return order


@router.post("/orders/{order_id}/cancel", response_model=OrderRead)
def cancel_order(
    order_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = _VENDOR_DEP,
):
    vendor_id = current_user.id
    outcome = order_lifecycle.cancel_order(db, order_id=order_id, vendor_id=vendor_id)
    if not outcome.ok:
        raise http_error_for(outcome.error)
    audit_event(
        "order.cancelled",
        vendor_id,
        {"order_id": order_id},
        db=db,
        request_id=request_id_of(request),
    )
    return outcome.value
