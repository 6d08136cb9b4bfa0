from vconn.schemas.auth import Token
from vconn.schemas.contracts import (
    AcceptedContractRead,
    ContractCreate,
    ContractRead,
    ContractUpdate,
    VendorContractsResponse,
    WholesalerContractRead,
    WholesalerMiniRead,
)
from vconn.schemas.orders import (
    DeliveryRead,
    OrderContractMiniRead,
    OrderCreate,
    OrderRead,
    OrderVendorMiniRead,
    VendorOrdersResponse,
)
from vconn.schemas.stats import VendorStatsRead, WholesalerStatsRead
from vconn.schemas.users import UserCreate, UserRead

__all__ = [
    "AcceptedContractRead",
    "ContractCreate",
    "ContractRead",
    "ContractUpdate",
    "DeliveryRead",
    "OrderContractMiniRead",
    "OrderCreate",
    "OrderRead",
    "OrderVendorMiniRead",
    "Token",
    "UserCreate",
    "UserRead",
    "VendorContractsResponse",
    "VendorOrdersResponse",
    "VendorStatsRead",
    "WholesalerContractRead",
    "WholesalerMiniRead",
    "WholesalerStatsRead",
]
