from datetime import date, datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from vconn.database import Base


class UserRole(PyEnum):
    vendor = "vendor"
    wholesaler = "wholesaler"


class ContractStatus(PyEnum):
    active = "active"
    inactive = "inactive"


class OrderStatus(PyEnum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"
    delivered = "delivered"


# Statuses from which an order may still be cancelled or delivered.
OPEN_ORDER_STATUSES = frozenset({OrderStatus.pending, OrderStatus.confirmed})


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(64))
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, native_enum=False), nullable=False, index=True
    )
    business_name: Mapped[str | None] = mapped_column(String(255))
    address: Mapped[str | None] = mapped_column(Text)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Quota counters; only the quota ledger increments these.
    free_attempts_used: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    cancellations_used: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("free_attempts_used >= 0", name="ck_users_free_attempts_used_non_negative"),
        CheckConstraint("cancellations_used >= 0", name="ck_users_cancellations_used_non_negative"),
    )

    contracts = relationship("Contract", back_populates="wholesaler")
    orders = relationship("Order", back_populates="vendor")

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"


class Contract(Base):
    __tablename__ = "contracts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wholesaler_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    daily_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_unit: Mapped[float] = mapped_column(Float, nullable=False)
    duration_days: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(32), default=ContractStatus.active.value, index=True)
    # Fixed at creation: creation date + duration_days.
    end_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    wholesaler = relationship("User", back_populates="contracts", lazy="joined")
    acceptances = relationship("VendorContract", back_populates="contract")
    orders = relationship("Order", back_populates="contract")

    @validates("status")
    def _validate_status(self, _key, value: str | ContractStatus | None):
        if value is None:
            return ContractStatus.active.value
        if isinstance(value, ContractStatus):
            value = value.value
        allowed = {s.value for s in ContractStatus}
        if value not in allowed:
            raise ValueError(f"Invalid contract status: {value}")
        return value

    def _validate_invariants(self) -> None:
        if self.daily_quantity is not None and int(self.daily_quantity) <= 0:
            raise ValueError("Contract.daily_quantity must be > 0")
        if self.price_per_unit is not None and float(self.price_per_unit) < 0:
            raise ValueError("Contract.price_per_unit must be >= 0")
        if self.duration_days is not None and int(self.duration_days) <= 0:
            raise ValueError("Contract.duration_days must be > 0")


@event.listens_for(Contract, "before_insert")
def _contract_before_insert(_mapper, _connection, target: Contract):
    target._validate_invariants()


@event.listens_for(Contract, "before_update")
def _contract_before_update(_mapper, _connection, target: Contract):
    target._validate_invariants()


class VendorContract(Base):
    """A vendor's acceptance of a contract. Permanent once written."""

    __tablename__ = "vendor_contracts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vendor_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    contract_id: Mapped[int] = mapped_column(ForeignKey("contracts.id"), nullable=False, index=True)
    accepted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("vendor_id", "contract_id", name="uq_vendor_contracts_vendor_contract"),
    )

    contract = relationship("Contract", back_populates="acceptances")
    vendor = relationship("User")


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vendor_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    contract_id: Mapped[int] = mapped_column(ForeignKey("contracts.id"), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    # Frozen at creation; later price changes on the contract never touch it.
    total_amount: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus, native_enum=False),
        default=OrderStatus.pending,
        nullable=False,
        index=True,
    )
    delivery_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (CheckConstraint("quantity > 0", name="ck_orders_quantity_positive"),)

    vendor = relationship("User", back_populates="orders")
    contract = relationship("Contract", back_populates="orders")


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    payload_json: Mapped[str | None] = mapped_column(Text)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
