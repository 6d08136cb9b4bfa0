from vconn.services import contract_registry, delivery_aggregator, order_lifecycle, quota_ledger
from vconn.services.audit import audit_event
from vconn.services.errors import (
    AlreadyAccepted,
    Eligibility,
    EngineError,
    NotEligible,
    NotFound,
    Outcome,
    QuotaExceeded,
    ValidationError,
)

__all__ = [
    "AlreadyAccepted",
    "Eligibility",
    "EngineError",
    "NotEligible",
    "NotFound",
    "Outcome",
    "QuotaExceeded",
    "ValidationError",
    "audit_event",
    "contract_registry",
    "delivery_aggregator",
    "order_lifecycle",
    "quota_ledger",
]
