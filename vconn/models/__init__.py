from vconn.models.domain import (  # noqa: F401
    OPEN_ORDER_STATUSES,
    AuditLog,
    Contract,
    ContractStatus,
    Order,
    OrderStatus,
    User,
    UserRole,
    VendorContract,
)
