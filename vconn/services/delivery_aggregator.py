"""Read-side delivery and earnings views for wholesalers and vendors.

Nothing here mutates state; every figure is derived from orders and can be
recomputed at any time.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from vconn import models
from vconn.config import settings
from vconn.services import contract_registry, order_lifecycle, quota_ledger


@dataclass(frozen=True)
class WholesalerStats:
    active_contracts: int
    today_deliveries: int
    today_earnings: float
    total_earnings: float
    contracts_ending_soon: list[models.Contract]
    upcoming_orders: list[models.Order]


@dataclass(frozen=True)
class VendorStats:
    total_orders: int
    active_orders: int
    available_contracts: int
    free_attempts_remaining: int
    cancellations_remaining: int
    recent_orders: list[models.Order]


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _wholesaler_orders(db: Session, wholesaler_id: int):
    return (
        db.query(models.Order)
        .join(models.Contract, models.Contract.id == models.Order.contract_id)
        .options(joinedload(models.Order.contract), joinedload(models.Order.vendor))
        .filter(models.Contract.wholesaler_id == int(wholesaler_id))
    )


def _delivered_sum(db: Session, wholesaler_id: int, day: date | None) -> float:
    query = (
        db.query(func.coalesce(func.sum(models.Order.total_amount), 0.0))
        .join(models.Contract, models.Contract.id == models.Order.contract_id)
        .filter(
            models.Contract.wholesaler_id == int(wholesaler_id),
            models.Order.status == models.OrderStatus.delivered,
        )
    )
    if day is not None:
        query = query.filter(models.Order.delivery_date == day)
    return float(query.scalar() or 0.0)


def today_deliveries(
    db: Session, *, wholesaler_id: int, today: date | None = None
) -> list[models.Order]:
    """Open orders due today on this wholesaler's contracts, oldest first."""

    today = today or _today()
    return (
        _wholesaler_orders(db, wholesaler_id)
        .filter(
            models.Order.delivery_date == today,
            models.Order.status.in_(list(models.OPEN_ORDER_STATUSES)),
        )
        .order_by(models.Order.created_at.asc(), models.Order.id.asc())
        .all()
    )


def deliveries_by_date(db: Session, *, wholesaler_id: int, day: date) -> list[models.Order]:
    return (
        _wholesaler_orders(db, wholesaler_id)
        .filter(models.Order.delivery_date == day)
        .order_by(models.Order.status.asc(), models.Order.created_at.asc(), models.Order.id.asc())
        .all()
    )


def today_earnings(db: Session, *, wholesaler_id: int, today: date | None = None) -> float:
    return _delivered_sum(db, wholesaler_id, today or _today())


def total_earnings(db: Session, *, wholesaler_id: int) -> float:
    return _delivered_sum(db, wholesaler_id, None)


def wholesaler_stats(
    db: Session, *, wholesaler_id: int, today: date | None = None
) -> WholesalerStats:
    today = today or _today()
    deliveries = today_deliveries(db, wholesaler_id=wholesaler_id, today=today)
    return WholesalerStats(
        active_contracts=len(
            contract_registry.active_by_wholesaler(db, wholesaler_id=wholesaler_id, today=today)
        ),
        today_deliveries=len(deliveries),
        today_earnings=today_earnings(db, wholesaler_id=wholesaler_id, today=today),
        total_earnings=total_earnings(db, wholesaler_id=wholesaler_id),
        contracts_ending_soon=contract_registry.ending_soon_by_wholesaler(
            db, wholesaler_id=wholesaler_id, days=settings.ending_soon_days, today=today
        ),
        upcoming_orders=deliveries[:5],
    )


def vendor_stats(db: Session, *, vendor_id: int, today: date | None = None) -> VendorStats:
    active = order_lifecycle.active_by_vendor(db, vendor_id=vendor_id)
    quotas = quota_ledger.snapshot(db, vendor_id)
    return VendorStats(
        total_orders=order_lifecycle.count_by_vendor(db, vendor_id=vendor_id),
        active_orders=len(active),
        available_contracts=len(
            contract_registry.available_for(db, vendor_id=vendor_id, today=today)
        ),
        free_attempts_remaining=quotas.free_attempts_remaining,
        cancellations_remaining=quotas.cancellations_remaining,
        recent_orders=active[:5],
    )
