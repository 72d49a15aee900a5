from __future__ import annotations

import enum
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import (
    String, Integer, Boolean, DateTime, Date, Numeric, ForeignKey, Text,
    Enum as SAEnum, UniqueConstraint, Index, func
)

from sqlalchemy.orm import (
    DeclarativeBase, Mapped, mapped_column, relationship
)


# base
class Base(DeclarativeBase):
    pass

# enums = statuts
class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    STAFF = "STAFF"

class PropertyStatus(str, enum.Enum):
    AVAILABLE = "disponible"
    RESERVED = "reserve"
    SOLD = "vendu"

class PaymentType(str, enum.Enum):
    CASH = "comptant"
    INSTALLMENTS = "echelonne"

class SaleStatus(str, enum.Enum):
    IN_PROGRESS = "en_cours"
    COMPLETE = "complete"
    CANCELED = "annule"

class InstallmentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"


def _enum_values(e):
    return [m.value for m in e]


# models
class UserORM(Base):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str] = mapped_column(String(160), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    role: Mapped[UserRole] = mapped_column(
        SAEnum(UserRole, name="user_role"), nullable=False, default=UserRole.STAFF
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    sales: Mapped[List["SaleORM"]] = relationship(back_populates="user")

class BuyerORM(Base):
    """Acquéreur."""
    __tablename__ = "buyers"
    __table_args__ = (
        Index("ix_buyers_phone", "phone"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(140), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    sales: Mapped[List["SaleORM"]] = relationship(back_populates="buyer")

class PropertyORM(Base):
    """Bien mis en vente."""
    __tablename__ = "properties"
    __table_args__ = (
        Index("ix_properties_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(160), nullable=False)
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    property_type: Mapped[str] = mapped_column(String(40), nullable=False, default="maison")
    price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)

    status: Mapped[PropertyStatus] = mapped_column(
        SAEnum(PropertyStatus, name="property_status", values_callable=_enum_values),
        nullable=False,
        default=PropertyStatus.AVAILABLE,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    sales: Mapped[List["SaleORM"]] = relationship(back_populates="property")

class SaleORM(Base):
    """Vente immobilière."""
    __tablename__ = "sales"
    __table_args__ = (
        UniqueConstraint("public_id", name="uq_sales_public_id"),
        Index("ix_sales_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    public_id: Mapped[str] = mapped_column(String(32), nullable=False)

    property_id: Mapped[int] = mapped_column(ForeignKey("properties.id"), nullable=False)
    buyer_id: Mapped[int] = mapped_column(ForeignKey("buyers.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)

    sale_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    payment_type: Mapped[PaymentType] = mapped_column(
        SAEnum(PaymentType, name="payment_type", values_callable=_enum_values),
        nullable=False,
        default=PaymentType.CASH,
    )
    payment_method: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)

    down_payment: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    monthly_payment: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    total_installments: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    paid_installments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[SaleStatus] = mapped_column(
        SAEnum(SaleStatus, name="sale_status", values_callable=_enum_values),
        nullable=False,
        default=SaleStatus.IN_PROGRESS,
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    property: Mapped["PropertyORM"] = relationship(back_populates="sales")
    buyer: Mapped["BuyerORM"] = relationship(back_populates="sales")
    user: Mapped["UserORM"] = relationship(back_populates="sales")

    installments: Mapped[List["InstallmentORM"]] = relationship(
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="InstallmentORM.number",
    )

class InstallmentORM(Base):
    """Échéance d'une vente à paiement échelonné."""
    __tablename__ = "installments"
    __table_args__ = (
        UniqueConstraint("sale_id", "number", name="uq_installments_sale_number"),
        Index("ix_installments_due", "due_date", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    sale_id: Mapped[int] = mapped_column(ForeignKey("sales.id"), nullable=False)

    number: Mapped[int] = mapped_column(Integer, nullable=False)  # 1..N
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    status: Mapped[InstallmentStatus] = mapped_column(
        SAEnum(InstallmentStatus, name="installment_status", values_callable=_enum_values),
        nullable=False,
        default=InstallmentStatus.PENDING,
    )

    # renseignés uniquement une fois payée
    paid_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    paid_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    payment_method: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    receipt_number: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    sale: Mapped["SaleORM"] = relationship(back_populates="installments")

    __mapper_args__ = {"version_id_col": version}

class ActivityLogORM(Base):
    __tablename__ = "activity_logs"
    __table_args__ = (
        Index("ix_activity_logs_entity", "entity_type", "entity_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)

    action: Mapped[str] = mapped_column(String(20), nullable=False)  # create/update/delete
    entity_type: Mapped[str] = mapped_column(String(40), nullable=False)
    entity_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    details_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

class ReceiptTemplateORM(Base):
    __tablename__ = "receipt_templates"
    __table_args__ = (
        Index("ix_receipt_templates_user", "user_id", "is_default"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)

    name: Mapped[str] = mapped_column(String(120), nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    schema_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # ReceiptTemplateConfig sérialisé
    config_json: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
