from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..constants import FundType, LevyStatus, MaintenanceStatus, Role


class CSRFTokenRead(BaseModel):
    csrf_token: str


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    username: str
    email: str
    password: str
    confirm_password: Optional[str] = None


class CurrentUserRead(BaseModel):
    id: int
    username: str
    role: Role

    model_config = ConfigDict(from_attributes=True)


class UserRead(BaseModel):
    id: int
    username: str
    email: str
    role: Role
    role_description: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserRoleUpdate(BaseModel):
    role: Role


class BootstrapStatus(BaseModel):
    initial_setup: bool
    can_create_admin: bool


class UnitCreate(BaseModel):
    unit_number: str
    unit_entitlements: int
    floor_number: Optional[int] = None
    owner_id: Optional[int] = None


class UnitOwnerUpdate(BaseModel):
    owner_id: Optional[int] = None


class UnitRead(BaseModel):
    id: int
    unit_number: str
    floor_number: Optional[int]
    unit_entitlements: int
    owner_id: Optional[int]
    owner_username: Optional[str] = None


class OwnerDirectoryEntry(BaseModel):
    unit_number: str
    floor_number: Optional[int]
    unit_entitlements: int
    owner_username: str


class BudgetItemCreate(BaseModel):
    category: str
    description: str
    budgeted_amount: Decimal
    fund_type: FundType
    actual_amount: Decimal = Decimal("0")
    financial_year: Optional[str] = None


class BudgetItemRead(BaseModel):
    id: int
    category: str
    description: str
    budgeted_amount: Decimal
    actual_amount: Decimal
    fund_type: FundType
    financial_year: str
    created_by: Optional[int]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FundSummaryRead(BaseModel):
    fund_type: FundType
    budgeted: Decimal
    actual: Decimal
    percent_spent: int


class BudgetOverview(BaseModel):
    financial_year: str
    totals: Dict[str, Decimal]
    funds: List[FundSummaryRead]
    items: List[BudgetItemRead]


class LevyRead(BaseModel):
    id: int
    unit_id: int
    unit_number: Optional[str]
    owner_username: Optional[str]
    amount: Decimal
    admin_amount: Decimal
    capital_amount: Decimal
    due_date: date
    status: LevyStatus
    quarter: str
    created_at: datetime


class LevyListResponse(BaseModel):
    levies: List[LevyRead]
    totals: Dict[str, Decimal]


class LevyGenerateRequest(BaseModel):
    admin_rate: Decimal
    capital_rate: Decimal
    due_date: Optional[date] = None
    quarter: str = ""


class LevyGenerationResultRead(BaseModel):
    generated_count: int
    total_amount: Decimal
    quarter: str


class SuggestedRatesRead(BaseModel):
    financial_year: str
    admin_budget: Decimal
    capital_budget: Decimal
    total_units: int
    total_entitlements: int
    admin_rate: Optional[Decimal]
    capital_rate: Optional[Decimal]

    model_config = ConfigDict(from_attributes=True)


class RecentGenerationRead(BaseModel):
    quarter: str
    due_date: date
    units_generated: int
    total_amount: Decimal
    generated_at: datetime
    generated_by: Optional[str]


class LevyGenerationOverview(BaseModel):
    suggested: SuggestedRatesRead
    recent: List[RecentGenerationRead]


class LevyPaymentRequest(BaseModel):
    payment_method: str
    amount: Optional[Decimal] = None


class LevyPaymentRead(BaseModel):
    id: int
    levy_id: int
    amount: Decimal
    payment_date: date
    payment_method: str
    reference_number: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OverdueUpdateResult(BaseModel):
    updated: int
    as_of: date


class MaintenanceCreate(BaseModel):
    title: str
    description: str
    unit_id: Optional[int] = None


class MaintenanceStatusUpdate(BaseModel):
    status: MaintenanceStatus


class MaintenanceRead(BaseModel):
    id: int
    unit_id: Optional[int]
    unit_number: Optional[str]
    title: str
    description: str
    status: MaintenanceStatus
    created_by: int
    created_by_name: Optional[str]
    created_at: datetime
    updated_at: datetime


class DocumentCreate(BaseModel):
    title: str
    file_path: str
    document_type: str = Field(default="other")


class DocumentRead(BaseModel):
    id: int
    title: str
    document_type: str
    file_path: str
    uploaded_by: Optional[int]
    uploaded_by_name: Optional[str]
    created_at: datetime


class AuditLogEntry(BaseModel):
    id: int
    timestamp: datetime
    actor_user_id: Optional[int]
    actor_username: Optional[str]
    action: str
    target_entity_type: Optional[str]
    target_entity_id: Optional[str]
    before: Any = None
    after: Any = None


class AuditLogList(BaseModel):
    items: List[AuditLogEntry]
    total: int


class NoticeCreate(BaseModel):
    title: str
    content: str
    is_important: bool = False


class NoticeRead(BaseModel):
    id: int
    title: str
    content: str
    is_important: bool
    created_by_name: Optional[str]
    created_at: datetime


class BuildingUpdateCreate(BaseModel):
    title: str
    content: str


class BuildingUpdateRead(BaseModel):
    id: int
    title: str
    content: str
    created_by_name: Optional[str]
    created_at: datetime
