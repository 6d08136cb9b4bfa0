from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Mapping

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vconn import models
from vconn.database import transaction
from vconn.services.errors import (
    AlreadyAccepted,
    NotEligible,
    NotFound,
    Outcome,
    ValidationError,
)

logger = logging.getLogger("vconn.contracts")

# Fields a wholesaler may change after creation; end_date stays fixed.
MUTABLE_FIELDS = ("product_name", "daily_quantity", "price_per_unit", "description")
REQUIRED_FIELDS = ("product_name", "daily_quantity", "price_per_unit")
ACCEPTANCE_CONSTRAINT = "uq_vendor_contracts_vendor_contract"


@dataclass(frozen=True)
class UpdateResult:
    contract: models.Contract | None
    rowcount: int

    @property
    def updated(self) -> bool:
        return self.rowcount > 0


@dataclass(frozen=True)
class WholesalerContractRow:
    contract: models.Contract
    accepted_vendors: int
    total_orders: int


@dataclass(frozen=True)
class AcceptedContractRow:
    contract: models.Contract
    accepted_at: datetime


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _open_for_business(today: date):
    return and_(
        models.Contract.status == models.ContractStatus.active.value,
        models.Contract.end_date > today,
    )


def get(db: Session, contract_id: int) -> models.Contract | None:
    return db.get(models.Contract, int(contract_id))


def create(
    db: Session,
    *,
    wholesaler_id: int,
    fields: Mapping[str, Any],
    now: datetime | None = None,
) -> models.Contract:
    """Create an active contract whose end date is fixed at now + duration."""

    now = now or _utc_now()
    duration = int(fields["duration_days"])
    with transaction(db):
        contract = models.Contract(
            wholesaler_id=int(wholesaler_id),
            product_name=fields["product_name"],
            daily_quantity=int(fields["daily_quantity"]),
            price_per_unit=float(fields["price_per_unit"]),
            duration_days=duration,
            description=fields.get("description"),
            status=models.ContractStatus.active,
            end_date=(now + timedelta(days=duration)).date(),
            created_at=now,
        )
        db.add(contract)
        db.flush()
    db.refresh(contract)
    logger.info(
        "contract_created",
        extra={"contract_id": contract.id, "wholesaler_id": wholesaler_id},
    )
    return contract


def is_accepted(db: Session, *, vendor_id: int, contract_id: int) -> bool:
    return (
        db.query(models.VendorContract.id)
        .filter(
            models.VendorContract.vendor_id == int(vendor_id),
            models.VendorContract.contract_id == int(contract_id),
        )
        .first()
        is not None
    )


def lock_if_open(db: Session, contract_id: int, *, today: date) -> bool:
    """Take the write lock on an active, unexpired contract inside the caller's transaction.

    A no-op guarded UPDATE: it matches zero rows once the contract has been
    deactivated or has expired, and otherwise holds the row until the caller
    commits, so a concurrent deactivation waits for it.
    """

    rowcount = (
        db.query(models.Contract)
        .filter(
            models.Contract.id == int(contract_id),
            models.Contract.status == models.ContractStatus.active.value,
            models.Contract.end_date > today,
        )
        .update(
            # updated_at is named so its onupdate default does not fire.
            {
                models.Contract.status: models.Contract.status,
                models.Contract.updated_at: models.Contract.updated_at,
            },
            synchronize_session=False,
        )
    )
    return bool(rowcount)


def _is_duplicate_acceptance(exc: IntegrityError) -> bool:
    orig = exc.orig
    constraint = getattr(getattr(orig, "diag", None), "constraint_name", None)
    if constraint:
        return constraint == ACCEPTANCE_CONSTRAINT
    # sqlite names the columns instead of the constraint.
    message = str(orig)
    return "UNIQUE" in message and "vendor_contracts.vendor_id" in message


def accept_by_vendor(
    db: Session,
    *,
    contract_id: int,
    vendor_id: int,
    now: datetime | None = None,
) -> Outcome[models.Contract]:
    """Record a vendor's acceptance of a contract.

    Uniqueness of (vendor, contract) is enforced by the database constraint,
    not by a prior SELECT: the INSERT either lands or fails with an
    IntegrityError, which is reported as AlreadyAccepted. Concurrent identical
    calls therefore produce exactly one acceptance. The contract row is locked
    before the INSERT, so a deactivation cannot slip in between.
    Any other integrity failure propagates.
    """

    now = now or _utc_now()
    try:
        with transaction(db):
            contract = get(db, contract_id)
            if contract is None:
                db.rollback()
                return Outcome.failure(NotFound("Contract not found"))
            if not lock_if_open(db, contract_id, today=now.date()):
                db.rollback()
                return Outcome.failure(NotEligible("Contract is no longer available"))
            db.add(
                models.VendorContract(
                    vendor_id=int(vendor_id),
                    contract_id=int(contract_id),
                    accepted_at=now,
                )
            )
            db.flush()
    except IntegrityError as exc:
        if not _is_duplicate_acceptance(exc):
            raise
        logger.info(
            "contract_accept_duplicate",
            extra={"contract_id": contract_id, "vendor_id": vendor_id},
        )
        return Outcome.failure(AlreadyAccepted("Contract already accepted"))

    logger.info("contract_accepted", extra={"contract_id": contract_id, "vendor_id": vendor_id})
    return Outcome.success(get(db, contract_id))


def available_for(
    db: Session, *, vendor_id: int, today: date | None = None
) -> list[models.Contract]:
    """Active, unexpired contracts this vendor has not accepted yet, newest first."""

    today = today or _utc_now().date()
    accepted = (
        db.query(models.VendorContract.id)
        .filter(
            models.VendorContract.contract_id == models.Contract.id,
            models.VendorContract.vendor_id == int(vendor_id),
        )
        .exists()
    )
    return (
        db.query(models.Contract)
        .filter(_open_for_business(today))
        .filter(~accepted)
        .order_by(models.Contract.created_at.desc(), models.Contract.id.desc())
        .all()
    )


def list_by_vendor(db: Session, *, vendor_id: int) -> list[AcceptedContractRow]:
    rows = (
        db.query(models.Contract, models.VendorContract.accepted_at)
        .join(models.VendorContract, models.VendorContract.contract_id == models.Contract.id)
        .filter(models.VendorContract.vendor_id == int(vendor_id))
        .order_by(models.VendorContract.accepted_at.desc(), models.VendorContract.id.desc())
        .all()
    )
    return [AcceptedContractRow(contract=c, accepted_at=accepted_at) for c, accepted_at in rows]


def list_by_wholesaler(db: Session, *, wholesaler_id: int) -> list[WholesalerContractRow]:
    """All of a wholesaler's contracts with acceptance and order counts."""

    acceptance_counts = (
        db.query(
            models.VendorContract.contract_id.label("contract_id"),
            func.count(models.VendorContract.id).label("n"),
        )
        .group_by(models.VendorContract.contract_id)
        .subquery()
    )
    order_counts = (
        db.query(
            models.Order.contract_id.label("contract_id"),
            func.count(models.Order.id).label("n"),
        )
        .group_by(models.Order.contract_id)
        .subquery()
    )
    rows = (
        db.query(
            models.Contract,
            func.coalesce(acceptance_counts.c.n, 0),
            func.coalesce(order_counts.c.n, 0),
        )
        .outerjoin(acceptance_counts, acceptance_counts.c.contract_id == models.Contract.id)
        .outerjoin(order_counts, order_counts.c.contract_id == models.Contract.id)
        .filter(models.Contract.wholesaler_id == int(wholesaler_id))
        .order_by(models.Contract.created_at.desc(), models.Contract.id.desc())
        .all()
    )
    return [
        WholesalerContractRow(contract=c, accepted_vendors=int(a), total_orders=int(o))
        for c, a, o in rows
    ]


def active_by_wholesaler(
    db: Session, *, wholesaler_id: int, today: date | None = None
) -> list[models.Contract]:
    today = today or _utc_now().date()
    return (
        db.query(models.Contract)
        .filter(models.Contract.wholesaler_id == int(wholesaler_id))
        .filter(_open_for_business(today))
        .order_by(models.Contract.created_at.desc(), models.Contract.id.desc())
        .all()
    )


def ending_soon_by_wholesaler(
    db: Session, *, wholesaler_id: int, days: int = 7, today: date | None = None
) -> list[models.Contract]:
    today = today or _utc_now().date()
    horizon = today + timedelta(days=int(days))
    return (
        db.query(models.Contract)
        .filter(models.Contract.wholesaler_id == int(wholesaler_id))
        .filter(_open_for_business(today))
        .filter(models.Contract.end_date <= horizon)
        .order_by(models.Contract.end_date.asc(), models.Contract.id.asc())
        .all()
    )


def update_by_wholesaler(
    db: Session,
    *,
    contract_id: int,
    wholesaler_id: int,
    fields: Mapping[str, Any],
) -> Outcome[UpdateResult]:
    """Update descriptive fields on a contract the wholesaler owns.

    Unknown or immutable keys are ignored, as are nulls for the NOT NULL
    columns; a null description clears it. With no mutable field left the
    outcome is a ValidationError. An ownership mismatch is NOT an error: the
    guarded UPDATE simply affects zero rows, and callers must check
    ``UpdateResult.rowcount``.
    """

    updates = {
        k: fields[k]
        for k in MUTABLE_FIELDS
        if k in fields and (fields[k] is not None or k not in REQUIRED_FIELDS)
    }
    if not updates:
        return Outcome.failure(ValidationError("No valid fields to update"))
    if "daily_quantity" in updates and int(updates["daily_quantity"]) <= 0:
        return Outcome.failure(ValidationError("daily_quantity must be positive"))
    if "price_per_unit" in updates and float(updates["price_per_unit"]) < 0:
        return Outcome.failure(ValidationError("price_per_unit must not be negative"))

    updates["updated_at"] = _utc_now()
    with transaction(db):
        rowcount = (
            db.query(models.Contract)
            .filter(
                models.Contract.id == int(contract_id),
                models.Contract.wholesaler_id == int(wholesaler_id),
            )
            .update(updates, synchronize_session=False)
        )
    if not rowcount:
        return Outcome.success(UpdateResult(contract=None, rowcount=0))
    return Outcome.success(UpdateResult(contract=get(db, contract_id), rowcount=int(rowcount)))


def deactivate_by_wholesaler(
    db: Session, *, contract_id: int, wholesaler_id: int
) -> UpdateResult:
    """Mark a contract inactive. Existing acceptances and orders are untouched."""

    with transaction(db):
        rowcount = (
            db.query(models.Contract)
            .filter(
                models.Contract.id == int(contract_id),
                models.Contract.wholesaler_id == int(wholesaler_id),
            )
            .update(
                {
                    models.Contract.status: models.ContractStatus.inactive.value,
                    models.Contract.updated_at: _utc_now(),
                },
                synchronize_session=False,
            )
        )
    if not rowcount:
        return UpdateResult(contract=None, rowcount=0)
    return UpdateResult(contract=get(db, contract_id), rowcount=int(rowcount))


def search(
    db: Session,
    *,
    text: str | None = None,
    location: str | None = None,
    today: date | None = None,
) -> list[models.Contract]:
    """Active, unexpired contracts filtered by text and/or wholesaler location."""

    today = today or _utc_now().date()
    query = (
        db.query(models.Contract)
        .join(models.User, models.User.id == models.Contract.wholesaler_id)
        .filter(_open_for_business(today))
    )

    text = (text or "").strip()
    if text:
        like = f"%{text}%"
        query = query.filter(
            or_(
                models.Contract.product_name.ilike(like),
                models.Contract.description.ilike(like),
            )
        )

    location = (location or "").strip()
    if location:
        query = query.filter(models.User.address.ilike(f"%{location}%"))

    return query.order_by(models.Contract.created_at.desc(), models.Contract.id.desc()).all()
