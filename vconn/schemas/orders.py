from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from vconn.models.domain import OrderStatus


class OrderCreate(BaseModel):
    contract_id: int
    quantity: int = Field(..., gt=0)


class OrderContractMiniRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_name: str
    price_per_unit: float
    wholesaler_id: int


class OrderVendorMiniRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    phone: Optional[str] = None


class OrderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    vendor_id: int
    contract_id: int
    quantity: int
    total_amount: float
    status: OrderStatus
    delivery_date: date
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    contract: Optional[OrderContractMiniRead] = None


class DeliveryRead(OrderRead):
    vendor: Optional[OrderVendorMiniRead] = None


class VendorOrdersResponse(BaseModel):
    orders: list[OrderRead]
    free_attempts_remaining: int
    cancellations_remaining: int
