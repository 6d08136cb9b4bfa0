import json
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vconn import models

logger = logging.getLogger("vconn.audit")


def audit_event(
    action: str,
    user_id: Optional[int],
    payload: Dict[str, Any],
    *,
    db: Session | None = None,
    request_id: str | None = None,
) -> Optional[int]:
    """
    Persist an audit event after the business change has committed.

    Runs in its own short transaction; a failed write is logged and does not
    undo the change it describes. Returns the created audit log id when available.
    """

    created_session = False
    session: Session | None = db
    try:
        if session is None:
            from vconn.database import SessionLocal

            session = SessionLocal()
            created_session = True

        log = models.AuditLog(
            action=action,
            user_id=user_id,
            payload_json=json.dumps(payload or {}, default=str),
            request_id=request_id,
        )
        session.add(log)
        session.commit()
        return log.id
    except SQLAlchemyError:
        logger.exception(
            "audit_write_failed",
            extra={"action": action, "user_id": user_id, "payload": payload},
        )
        if session is not None:
            session.rollback()
        return None
    finally:
        if created_session and session is not None:
            session.close()
