"""Sample building used for local development and demos."""
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.orm import Session

from ..auth.passwords import get_password_hash
from ..constants import FundType, MaintenanceStatus, Role
from ..models.models import BudgetItem, BuildingUpdate, Document, MaintenanceRequest, Notice, Unit, User
from ..services.budgets import current_financial_year
from ..services.levies import generate_levies

DEFAULT_ADMIN_PASSWORD = "Admin12345"
DEFAULT_USER_PASSWORD = "Owner12345"

USERS = [
    ("admin", "admin@skylineapts.com.au", Role.ADMIN),
    ("committee_chair", "chair@skylineapts.com.au", Role.COMMITTEE),
    ("treasurer", "treasurer@skylineapts.com.au", Role.COMMITTEE),
    ("john_smith", "john.smith@email.com", Role.OWNER),
    ("jane_doe", "jane.doe@email.com", Role.OWNER),
    ("mike_johnson", "mike.johnson@email.com", Role.OWNER),
    ("sarah_wilson", "sarah.wilson@email.com", Role.OWNER),
    ("david_brown", "david.brown@email.com", Role.OWNER),
    ("lisa_garcia", "lisa.garcia@email.com", Role.OWNER),
]

# unit number, floor, entitlements, owner username
UNITS = [
    ("101", 1, 1, "john_smith"),
    ("102", 1, 1, "jane_doe"),
    ("103", 1, 1, "mike_johnson"),
    ("104", 1, 1, "sarah_wilson"),
    ("201", 2, 2, "david_brown"),
    ("202", 2, 2, "lisa_garcia"),
    ("203", 2, 2, "john_smith"),
    ("204", 2, 2, "jane_doe"),
    ("301", 3, 3, "mike_johnson"),
    ("302", 3, 3, "sarah_wilson"),
    ("401", 4, 1, "david_brown"),
    ("402", 4, 1, "lisa_garcia"),
    ("501", 5, 2, "john_smith"),
    ("502", 5, 2, "jane_doe"),
    ("601", 6, 3, "mike_johnson"),
    ("602", 6, 3, "sarah_wilson"),
]

BUDGET_ITEMS = [
    ("Insurance", "Building insurance premium", "45000.00", "44500.00", FundType.ADMINISTRATION),
    ("Maintenance", "General building maintenance", "25000.00", "18750.00", FundType.ADMINISTRATION),
    ("Utilities", "Electricity and water for common areas", "15000.00", "12500.00", FundType.ADMINISTRATION),
    ("Management Fees", "Strata management company fees", "24000.00", "6000.00", FundType.ADMINISTRATION),
    ("Cleaning", "Common area cleaning services", "18000.00", "4500.00", FundType.ADMINISTRATION),
    ("Security", "24/7 security monitoring", "12000.00", "3000.00", FundType.ADMINISTRATION),
    ("Lift Upgrade", "Replacement of lift systems", "150000.00", "75000.00", FundType.CAPITAL_WORKS),
    ("Roof Repairs", "Major roof waterproofing", "80000.00", "0.00", FundType.CAPITAL_WORKS),
    ("Pool Renovation", "Rooftop pool area improvements", "45000.00", "12000.00", FundType.CAPITAL_WORKS),
    ("Fire Safety Upgrade", "Updated fire safety systems", "35000.00", "0.00", FundType.CAPITAL_WORKS),
]

MAINTENANCE_REQUESTS = [
    ("101", "Leaking tap in bathroom", "The bathroom tap is constantly dripping and needs repair.",
     MaintenanceStatus.PENDING, "john_smith"),
    (None, "Elevator making strange noises", "The elevator is making unusual noises when moving between floors.",
     MaintenanceStatus.IN_PROGRESS, "jane_doe"),
    (None, "Broken light in parking garage", "Light fixture in parking space B15 is not working.",
     MaintenanceStatus.COMPLETED, "mike_johnson"),
    ("201", "Air conditioning not working", "Unit AC system stopped working yesterday evening.",
     MaintenanceStatus.PENDING, "david_brown"),
    (None, "Pool filter needs cleaning", "Rooftop pool water is becoming cloudy.",
     MaintenanceStatus.IN_PROGRESS, "committee_chair"),
]

DOCUMENTS = [
    ("Building Insurance Certificate", "/documents/insurance.pdf", "insurance", "admin"),
    ("Annual Financial Report", "/documents/financial_report.pdf", "financial", "treasurer"),
    ("AGM Minutes", "/documents/agm_minutes.pdf", "minutes", "committee_chair"),
    ("Building Bylaws and Regulations", "/documents/bylaws.pdf", "bylaws", "admin"),
    ("Capital Works Plan", "/documents/capital_works_plan.pdf", "other", "committee_chair"),
    ("Quarterly Budget Report", "/documents/budget_q1.pdf", "financial", "treasurer"),
]

# title, content, important, author, posted at (UTC)
NOTICES = [
    ("Pool Maintenance Schedule", "The rooftop pool will be closed for maintenance on February 5-7, 2024.",
     False, "committee_chair", datetime(2024, 1, 25, 10, 0)),
    ("Annual General Meeting Notice", "The AGM will be held on March 15, 2024 at 7:00 PM in the community room.",
     True, "committee_chair", datetime(2024, 1, 20, 9, 30)),
    ("Elevator Maintenance", "Lift B will be out of service February 1-3 for scheduled maintenance.",
     False, "admin", datetime(2024, 1, 18, 14, 45)),
]

# title, content, author, posted at (UTC)
UPDATES = [
    ("New Security Features Installed",
     "Enhanced CCTV system and new access cards have been installed throughout the building.",
     "admin", datetime(2024, 1, 20, 16, 30)),
    ("Waste Management Changes",
     "New recycling bins have been installed on each floor. Please separate recyclables accordingly.",
     "committee_chair", datetime(2024, 1, 15, 11, 20)),
    ("Building WiFi Upgrade", "Common area WiFi has been upgraded to provide better coverage and speed.",
     "admin", datetime(2024, 1, 10, 13, 45)),
]

SAMPLE_LEVY_RATE = Decimal("106.25")


def seed_database(session: Session, *, with_levies: bool = True, today: Optional[date] = None) -> Dict[str, int]:
    """Populate an empty database. Does nothing if any user already exists."""
    if session.query(User).count():
        return {}

    today = today or date.today()
    admin_hash = get_password_hash(DEFAULT_ADMIN_PASSWORD)
    user_hash = get_password_hash(DEFAULT_USER_PASSWORD)
    users: Dict[str, User] = {}
    for username, email, role in USERS:
        user = User(
            username=username,
            email=email,
            hashed_password=admin_hash if role is Role.ADMIN else user_hash,
            role=role,
        )
        session.add(user)
        users[username] = user
    session.flush()

    units: Dict[str, Unit] = {}
    for number, floor, entitlements, owner in UNITS:
        unit = Unit(unit_number=number, floor_number=floor, unit_entitlements=entitlements, owner_id=users[owner].id)
        session.add(unit)
        units[number] = unit
    session.flush()

    financial_year = current_financial_year(today)
    admin = users["admin"]
    for category, description, budgeted, actual, fund in BUDGET_ITEMS:
        session.add(
            BudgetItem(
                category=category,
                description=description,
                budgeted_amount=Decimal(budgeted),
                actual_amount=Decimal(actual),
                fund_type=fund,
                financial_year=financial_year,
                created_by=admin.id,
            )
        )

    for unit_number, title, description, status, creator in MAINTENANCE_REQUESTS:
        session.add(
            MaintenanceRequest(
                unit_id=units[unit_number].id if unit_number else None,
                title=title,
                description=description,
                status=status,
                created_by=users[creator].id,
            )
        )

    for title, file_path, document_type, uploader in DOCUMENTS:
        session.add(
            Document(title=title, file_path=file_path, document_type=document_type, uploaded_by=users[uploader].id)
        )

    for title, content, important, author, posted_at in NOTICES:
        session.add(
            Notice(
                title=title,
                content=content,
                is_important=important,
                created_by=users[author].id,
                created_at=posted_at.replace(tzinfo=timezone.utc),
            )
        )

    for title, content, author, posted_at in UPDATES:
        session.add(
            BuildingUpdate(
                title=title,
                content=content,
                created_by=users[author].id,
                created_at=posted_at.replace(tzinfo=timezone.utc),
            )
        )
    session.commit()

    counts = {
        "users": len(users),
        "units": len(units),
        "budget_items": len(BUDGET_ITEMS),
        "maintenance_requests": len(MAINTENANCE_REQUESTS),
        "documents": len(DOCUMENTS),
        "notices": len(NOTICES),
        "updates": len(UPDATES),
        "levies": 0,
    }
    if with_levies:
        result = generate_levies(
            session,
            admin_rate=SAMPLE_LEVY_RATE,
            capital_rate=SAMPLE_LEVY_RATE,
            due_date=today + timedelta(days=30),
            quarter=f"Q{(today.month - 1) // 3 + 1} {today.year}",
            actor_user_id=admin.id,
        )
        counts["levies"] = result.generated_count
    return counts
