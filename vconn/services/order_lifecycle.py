from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from vconn import models
from vconn.database import transaction
from vconn.services import contract_registry, quota_ledger
from vconn.services.errors import (
    Eligibility,
    NotEligible,
    NotFound,
    Outcome,
    QuotaExceeded,
    ValidationError,
)
from vconn.services.quota_ledger import QuotaKind

logger = logging.getLogger("vconn.orders")

OrderStatus = models.OrderStatus

# pending -> {cancelled, delivered}; confirmed -> {cancelled, delivered}.
# cancelled and delivered are terminal. Nothing in this module produces confirmed.
ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.pending: frozenset({OrderStatus.cancelled, OrderStatus.delivered}),
    OrderStatus.confirmed: frozenset({OrderStatus.cancelled, OrderStatus.delivered}),
    OrderStatus.cancelled: frozenset(),
    OrderStatus.delivered: frozenset(),
}


def can_transition(from_status: OrderStatus, to_status: OrderStatus) -> bool:
    return to_status in ORDER_TRANSITIONS.get(from_status, frozenset())


def is_terminal(status: OrderStatus) -> bool:
    return not ORDER_TRANSITIONS.get(status)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _allowed_from(to_status: OrderStatus) -> list[OrderStatus]:
    return [s for s, targets in ORDER_TRANSITIONS.items() if to_status in targets]


def get_order(db: Session, order_id: int) -> models.Order | None:
    return (
        db.query(models.Order)
        .options(joinedload(models.Order.contract))
        .filter(models.Order.id == int(order_id))
        .first()
    )


def can_place_order(db: Session, *, vendor_id: int, contract_id: int) -> Eligibility:
    """Acceptance of the contract OR at least one free attempt left.

    Advisory only: ``place_order`` re-decides inside its own transaction.
    """

    if contract_registry.is_accepted(db, vendor_id=vendor_id, contract_id=contract_id):
        return Eligibility.allow()
    if quota_ledger.remaining(db, vendor_id, QuotaKind.free_attempts) > 0:
        return Eligibility.allow(uses_free_attempt=True)
    return Eligibility.deny(
        QuotaExceeded("You need to accept the contract or you have used all free attempts")
    )


def place_order(
    db: Session,
    *,
    vendor_id: int,
    contract_id: int,
    quantity: int,
    now: datetime | None = None,
) -> Outcome[models.Order]:
    """Create a pending order against a contract.

    The acceptance check, the free-attempt consumption (only when the vendor
    has not accepted this contract) and the INSERT commit together or not at
    all. The contract row stays locked from the eligibility re-check until
    commit. Consumption is a bounded conditional UPDATE, so a burst of
    concurrent requests can never overshoot the free-attempt cap.
    """

    if int(quantity) <= 0:
        return Outcome.failure(ValidationError("Quantity must be a positive integer"))

    now = now or _utc_now()
    with transaction(db):
        contract = contract_registry.get(db, contract_id)
        if contract is None:
            db.rollback()
            return Outcome.failure(NotFound("Contract not found"))
        if (
            contract.status != models.ContractStatus.active.value
            or contract.end_date <= now.date()
        ):
            db.rollback()
            return Outcome.failure(NotEligible("Contract is no longer available"))

        accepted = contract_registry.is_accepted(db, vendor_id=vendor_id, contract_id=contract_id)
        # Re-checked under the row lock; a deactivation may have committed since the read.
        if not contract_registry.lock_if_open(db, contract_id, today=now.date()):
            db.rollback()
            return Outcome.failure(NotEligible("Contract is no longer available"))
        db.refresh(contract)
        if not accepted and not quota_ledger.consume(db, vendor_id, QuotaKind.free_attempts):
            db.rollback()
            return Outcome.failure(
                QuotaExceeded("You need to accept the contract or you have used all free attempts")
            )

        order = models.Order(
            vendor_id=int(vendor_id),
            contract_id=int(contract_id),
            quantity=int(quantity),
            total_amount=float(contract.price_per_unit) * int(quantity),
            status=OrderStatus.pending,
            delivery_date=now.date() + timedelta(days=1),
            created_at=now,
            updated_at=now,
        )
        db.add(order)
        db.flush()
        order_id = order.id

    logger.info(
        "order_placed",
        extra={
            "order_id": order_id,
            "vendor_id": vendor_id,
            "contract_id": contract_id,
            "free_attempt": not accepted,
        },
    )
    return Outcome.success(get_order(db, order_id))


def can_cancel(db: Session, *, vendor_id: int, order_id: int) -> Eligibility:
    order = (
        db.query(models.Order)
        .filter(
            models.Order.id == int(order_id),
            models.Order.vendor_id == int(vendor_id),
            models.Order.status.in_(_allowed_from(OrderStatus.cancelled)),
        )
        .first()
    )
    if order is None:
        return Eligibility.deny(NotEligible("Order not found or not cancellable"))
    if quota_ledger.remaining(db, vendor_id, QuotaKind.cancellations) <= 0:
        return Eligibility.deny(QuotaExceeded("Cancellation limit exceeded"))
    return Eligibility.allow()


def cancel_order(
    db: Session,
    *,
    order_id: int,
    vendor_id: int,
    now: datetime | None = None,
) -> Outcome[models.Order]:
    """Cancel one of the vendor's open orders, consuming one cancellation.

    Both the guarded status change and the bounded counter increment run in a
    single transaction; if either affects zero rows the whole thing is rolled
    back.
    """

    now = now or _utc_now()
    with transaction(db):
        rowcount = (
            db.query(models.Order)
            .filter(
                models.Order.id == int(order_id),
                models.Order.vendor_id == int(vendor_id),
                models.Order.status.in_(_allowed_from(OrderStatus.cancelled)),
            )
            .update(
                {models.Order.status: OrderStatus.cancelled, models.Order.updated_at: now},
                synchronize_session=False,
            )
        )
        if not rowcount:
            db.rollback()
            if db.get(models.Order, int(order_id)) is None:
                return Outcome.failure(NotFound("Order not found"))
            return Outcome.failure(NotEligible("Order not found or not cancellable"))

        if not quota_ledger.consume(db, vendor_id, QuotaKind.cancellations):
            db.rollback()
            return Outcome.failure(QuotaExceeded("Cancellation limit exceeded"))

    logger.info("order_cancelled", extra={"order_id": order_id, "vendor_id": vendor_id})
    return Outcome.success(get_order(db, order_id))


def mark_delivered(
    db: Session,
    *,
    order_id: int,
    wholesaler_id: int,
    now: datetime | None = None,
) -> models.Order | None:
    """Mark an open order delivered if its contract belongs to the wholesaler.

    Returns None (zero rows affected) when the order is foreign, terminal or
    missing; that outcome is not distinguished.
    """

    now = now or _utc_now()
    owned_contracts = select(models.Contract.id).where(
        models.Contract.wholesaler_id == int(wholesaler_id)
    )
    with transaction(db):
        rowcount = (
            db.query(models.Order)
            .filter(
                models.Order.id == int(order_id),
                models.Order.contract_id.in_(owned_contracts),
                models.Order.status.in_(_allowed_from(OrderStatus.delivered)),
            )
            .update(
                {
                    models.Order.status: OrderStatus.delivered,
                    models.Order.delivered_at: now,
                    models.Order.updated_at: now,
                },
                synchronize_session=False,
            )
        )
    if not rowcount:
        return None
    logger.info("order_delivered", extra={"order_id": order_id, "wholesaler_id": wholesaler_id})
    return get_order(db, order_id)


def list_by_vendor(db: Session, *, vendor_id: int) -> list[models.Order]:
    return (
        db.query(models.Order)
        .options(joinedload(models.Order.contract))
        .filter(models.Order.vendor_id == int(vendor_id))
        .order_by(models.Order.created_at.desc(), models.Order.id.desc())
        .all()
    )


def active_by_vendor(db: Session, *, vendor_id: int) -> list[models.Order]:
    return (
        db.query(models.Order)
        .options(joinedload(models.Order.contract))
        .filter(
            models.Order.vendor_id == int(vendor_id),
            models.Order.status.in_(list(models.OPEN_ORDER_STATUSES)),
        )
        .order_by(models.Order.delivery_date.asc(), models.Order.id.asc())
        .all()
    )


def count_by_vendor(db: Session, *, vendor_id: int) -> int:
    return int(
        db.query(func.count(models.Order.id))
        .filter(models.Order.vendor_id == int(vendor_id))
        .scalar()
        or 0
    )
