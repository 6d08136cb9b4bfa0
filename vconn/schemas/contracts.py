from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ContractCreate(BaseModel):
    product_name: str = Field(..., min_length=1, max_length=255)
    daily_quantity: int = Field(..., gt=0)
    price_per_unit: float = Field(..., ge=0)
    duration_days: int = Field(..., gt=0, le=3650)
    description: Optional[str] = None


class ContractUpdate(BaseModel):
    # end_date, status and ownership are not updatable here.
    product_name: Optional[str] = Field(None, min_length=1, max_length=255)
    daily_quantity: Optional[int] = Field(None, gt=0)
    price_per_unit: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None


class WholesalerMiniRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    business_name: Optional[str] = None
    address: Optional[str] = None


class ContractRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    wholesaler_id: int
    product_name: str
    daily_quantity: int
    price_per_unit: float
    duration_days: int
    description: Optional[str] = None
    status: str
    end_date: date
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    wholesaler: Optional[WholesalerMiniRead] = None


class WholesalerContractRead(ContractRead):
    accepted_vendors: int = 0
    total_orders: int = 0


class AcceptedContractRead(ContractRead):
    accepted_at: datetime


class VendorContractsResponse(BaseModel):
    available: list[ContractRead]
    accepted: list[AcceptedContractRead]
