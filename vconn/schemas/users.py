from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from vconn.models.domain import UserRole


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=6, max_length=72)
    confirm_password: str
    phone: Optional[str] = Field(None, max_length=64)
    role: UserRole
    business_name: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    phone: Optional[str] = None
    role: UserRole
    business_name: Optional[str] = None
    address: Optional[str] = None
    active: bool
    created_at: Optional[datetime] = None
