"""Credential store: user lookups, creation and role administration."""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth.passwords import get_password_hash, password_meets_policy, verify_password
from ..constants import USERNAME_MIN_LENGTH, Role
from ..core.errors import NotFoundError, PreconditionError, ValidationError
from ..models.models import User
from .audit import audit_log

logger = logging.getLogger(__name__)

PASSWORD_POLICY_MESSAGE = (
    "Password must be at least 8 characters long and contain at least one uppercase letter, "
    "one lowercase letter, and one number."
)


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(User.username == username).first()


def get_user_by_id_and_username(db: Session, user_id: int, username: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id, User.username == username).first()


def count_users_by_role(db: Session, role: Role) -> int:
    return db.query(User).filter(User.role == role).count()


def list_users(db: Session) -> List[User]:
    return db.query(User).order_by(User.created_at.asc(), User.id.asc()).all()


def authenticate(db: Session, email: str, password: str) -> Optional[User]:
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        return None
    return user


def validate_new_account(
    username: str,
    email: str,
    password: str,
    confirm_password: Optional[str] = None,
) -> Tuple[str, str]:
    username = (username or "").strip()
    email = (email or "").strip()
    if not username or not email or not password:
        raise ValidationError("Please fill in all fields.")
    try:
        email = validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError as exc:
        raise ValidationError("Invalid email address.") from exc
    if not password_meets_policy(password):
        raise ValidationError(PASSWORD_POLICY_MESSAGE)
    if confirm_password is not None and password != confirm_password:
        raise ValidationError("Passwords do not match.")
    if len(username) < USERNAME_MIN_LENGTH:
        raise ValidationError(f"Username must be at least {USERNAME_MIN_LENGTH} characters long.")
    return username, email


def create_user(
    db: Session,
    *,
    username: str,
    email: str,
    password: str,
    role: Role = Role.OWNER,
    confirm_password: Optional[str] = None,
    actor_user_id: Optional[int] = None,
) -> User:
    username, email = validate_new_account(username, email, password, confirm_password)
    if get_user_by_email(db, email):
        raise ValidationError("Email is already registered.")
    if get_user_by_username(db, username):
        raise ValidationError("Username is already taken.")

    user = User(
        username=username,
        email=email,
        hashed_password=get_password_hash(password),
        role=role,
    )
    db.add(user)
    try:
        db.flush()
    except IntegrityError as exc:
        # Lost a race against another registration with the same email or username.
        db.rollback()
        raise ValidationError("Email or username is already registered.") from exc

    audit_log(
        db_session=db,
        actor_user_id=actor_user_id,
        action="user.create",
        target_entity_type="User",
        target_entity_id=str(user.id),
        after={"username": user.username, "email": user.email, "role": user.role.value},
        commit=False,
    )
    db.commit()
    db.refresh(user)
    logger.info("Created %s account %s (id=%s)", user.role.value, user.username, user.id)
    return user


def is_initial_setup(db: Session) -> bool:
    return count_users_by_role(db, Role.ADMIN) == 0


def can_create_admin(db: Session, caller_role: Optional[Role]) -> bool:
    """Admins may create admins; anyone may while no admin exists yet."""
    if is_initial_setup(db):
        return True
    return caller_role is Role.ADMIN


def change_role(db: Session, user_id: int, role: Role, actor_user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found.")
    if user.role == role:
        return user
    if user.role is Role.ADMIN and count_users_by_role(db, Role.ADMIN) <= 1:
        raise PreconditionError("The system must retain at least one admin.")

    before = user.role.value
    user.role = role
    audit_log(
        db_session=db,
        actor_user_id=actor_user_id,
        action="user.role_update",
        target_entity_type="User",
        target_entity_id=str(user.id),
        before={"role": before},
        after={"role": role.value},
        commit=False,
    )
    db.commit()
    db.refresh(user)
    logger.info("User %s role changed from %s to %s by %s", user.id, before, role.value, actor_user_id)
    return user
