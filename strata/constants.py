import enum


class Role(str, enum.Enum):
    OWNER = "owner"
    COMMITTEE = "committee"
    ADMIN = "admin"


class FundType(str, enum.Enum):
    ADMINISTRATION = "administration"
    CAPITAL_WORKS = "capital_works"


class LevyStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class MaintenanceStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


ROLE_DESCRIPTIONS = {
    Role.OWNER: "Unit owner with access to their own levies and requests",
    Role.COMMITTEE: "Strata committee member managing budgets and levies",
    Role.ADMIN: "Administrator with full access",
}

# Roles that see and manage every unit's records.
MANAGEMENT_ROLES = (Role.COMMITTEE, Role.ADMIN)

# Payment method -> reference prefix
PAYMENT_METHODS = {
    "credit_card": "CC",
    "bank_transfer": "BT",
    "direct_debit": "DD",
    "bpay": "BP",
    "cheque": "CQ",
}

DOCUMENT_TYPES = ("insurance", "financial", "minutes", "bylaws", "other")

USERNAME_MIN_LENGTH = 3
PASSWORD_MIN_LENGTH = 8

QUARTER_MAX_LENGTH = 20

IMPORTANT_NOTICES_LIMIT = 3
RECENT_UPDATES_LIMIT = 5

RECENT_GENERATIONS_LIMIT = 10
RECENT_GENERATIONS_DAYS = 183
