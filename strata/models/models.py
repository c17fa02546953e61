from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship as orm_relationship

from ..config import Base
from ..constants import QUARTER_MAX_LENGTH, ROLE_DESCRIPTIONS, FundType, LevyStatus, MaintenanceStatus, Role


def utcnow():
    return datetime.now(timezone.utc)


def _enum_column(enum_cls, name: str):
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        validate_strings=True,
        values_callable=lambda members: [member.value for member in members],
    )


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(_enum_column(Role, "user_role"), default=Role.OWNER, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    units = orm_relationship("Unit", back_populates="owner")
    audit_logs = orm_relationship("AuditLog", back_populates="actor")

    @property
    def role_description(self) -> str:
        return ROLE_DESCRIPTIONS[Role(self.role)]

    def has_role(self, role: Role) -> bool:
        return self.role == role

    def has_any_role(self, *roles: Role) -> bool:
        return self.role in set(roles)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(DateTime, default=utcnow, index=True, nullable=False)
    actor_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    action = Column(String, nullable=False)
    target_entity_type = Column(String, nullable=True)
    target_entity_id = Column(String, nullable=True)
    before = Column(Text, nullable=True)
    after = Column(Text, nullable=True)

    actor = orm_relationship("User", back_populates="audit_logs")


class Unit(Base):
    __tablename__ = "units"
    __table_args__ = (CheckConstraint("unit_entitlements > 0", name="ck_units_positive_entitlements"),)

    id = Column(Integer, primary_key=True, index=True)
    unit_number = Column(String(20), unique=True, nullable=False)
    floor_number = Column(Integer, nullable=True)
    unit_entitlements = Column(Integer, nullable=False, default=1)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    owner = orm_relationship("User", back_populates="units")
    levies = orm_relationship("Levy", back_populates="unit")
    maintenance_requests = orm_relationship("MaintenanceRequest", back_populates="unit")


class BudgetItem(Base):
    __tablename__ = "budget_items"

    id = Column(Integer, primary_key=True, index=True)
    category = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    budgeted_amount = Column(Numeric(12, 2), nullable=False)
    actual_amount = Column(Numeric(12, 2), nullable=False, default=0)
    fund_type = Column(_enum_column(FundType, "fund_type"), nullable=False)
    financial_year = Column(String(9), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    creator = orm_relationship("User")


class Levy(Base):
    __tablename__ = "levies"

    id = Column(Integer, primary_key=True, index=True)
    unit_id = Column(Integer, ForeignKey("units.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    admin_amount = Column(Numeric(12, 2), nullable=False)
    capital_amount = Column(Numeric(12, 2), nullable=False)
    due_date = Column(Date, nullable=False)
    status = Column(_enum_column(LevyStatus, "levy_status"), default=LevyStatus.PENDING, nullable=False, index=True)
    quarter = Column(String(QUARTER_MAX_LENGTH), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    unit = orm_relationship("Unit", back_populates="levies")
    creator = orm_relationship("User")
    payments = orm_relationship("LevyPayment", back_populates="levy", order_by="LevyPayment.id")


class LevyPayment(Base):
    __tablename__ = "levy_payments"

    id = Column(Integer, primary_key=True, index=True)
    levy_id = Column(Integer, ForeignKey("levies.id"), nullable=False, unique=True, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_date = Column(Date, nullable=False)
    payment_method = Column(String(30), nullable=False)
    reference_number = Column(String(40), unique=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    levy = orm_relationship("Levy", back_populates="payments")


class MaintenanceRequest(Base):
    __tablename__ = "maintenance_requests"

    id = Column(Integer, primary_key=True, index=True)
    unit_id = Column(Integer, ForeignKey("units.id"), nullable=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    status = Column(
        _enum_column(MaintenanceStatus, "maintenance_status"),
        default=MaintenanceStatus.PENDING,
        nullable=False,
    )
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    unit = orm_relationship("Unit", back_populates="maintenance_requests")
    creator = orm_relationship("User")


class Document(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    document_type = Column(String(30), nullable=False, default="other")
    file_path = Column(String(500), nullable=False)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    uploader = orm_relationship("User")


class Notice(Base):
    __tablename__ = "notices"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    is_important = Column(Boolean, nullable=False, default=False, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    creator = orm_relationship("User")


class BuildingUpdate(Base):
    __tablename__ = "updates"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    creator = orm_relationship("User")
