from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from sqlalchemy.orm import Session

from vconn import models
from vconn.config import settings

logger = logging.getLogger("vconn.quota")


class QuotaKind(str, Enum):
    free_attempts = "free_attempts"
    cancellations = "cancellations"


_COUNTER_COLUMNS = {
    QuotaKind.free_attempts: models.User.free_attempts_used,
    QuotaKind.cancellations: models.User.cancellations_used,
}


@dataclass(frozen=True)
class QuotaSnapshot:
    free_attempts_remaining: int
    cancellations_remaining: int


def cap_for(kind: QuotaKind) -> int:
    if kind == QuotaKind.free_attempts:
        return int(settings.free_attempts_cap)
    return int(settings.cancellations_cap)


def remaining(db: Session, actor_id: int, kind: QuotaKind) -> int:
    """Remaining units for ``kind``: cap - used, clamped to [0, cap].

    An unknown actor reads as nothing used.
    """

    column = _COUNTER_COLUMNS[kind]
    used = db.query(column).filter(models.User.id == int(actor_id)).scalar()
    cap = cap_for(kind)
    return max(0, min(cap, cap - int(used or 0)))


def consume(db: Session, actor_id: int, kind: QuotaKind) -> bool:
    """Consume one unit of ``kind`` with a bounded, atomic increment.

    Runs a single conditional UPDATE:

        UPDATE users SET <counter> = <counter> + 1
        WHERE id = :actor_id AND <counter> < :cap

    so concurrent callers can never push the counter past the cap. Returns
    False when nothing was consumed (quota exhausted or unknown actor).

    Callers own the transaction; nothing is committed here.
    """

    column = _COUNTER_COLUMNS[kind]
    rowcount = (
        db.query(models.User)
        .filter(models.User.id == int(actor_id))
        .filter(column < cap_for(kind))
        .update({column: column + 1}, synchronize_session=False)
    )
    consumed = bool(rowcount)
    if not consumed:
        logger.info("quota_exhausted", extra={"actor_id": actor_id, "kind": kind.value})
    return consumed


def snapshot(db: Session, actor_id: int) -> QuotaSnapshot:
    return QuotaSnapshot(
        free_attempts_remaining=remaining(db, actor_id, QuotaKind.free_attempts),
        cancellations_remaining=remaining(db, actor_id, QuotaKind.cancellations),
    )
