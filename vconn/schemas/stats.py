from pydantic import BaseModel, ConfigDict

from vconn.schemas.contracts import ContractRead
from vconn.schemas.orders import DeliveryRead, OrderRead


class VendorStatsRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_orders: int
    active_orders: int
    available_contracts: int
    free_attempts_remaining: int
    cancellations_remaining: int
    recent_orders: list[OrderRead]


class WholesalerStatsRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    active_contracts: int
    today_deliveries: int
    today_earnings: float
    total_earnings: float
    contracts_ending_soon: list[ContractRead]
    upcoming_orders: list[DeliveryRead]
