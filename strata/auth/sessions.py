"""Server-side sessions, idle expiry and the remember-me side channel.

Every request gets an :class:`AuthContext` built from its cookies. Route code
reads and mutates that context through :class:`SessionManager`; nothing is kept
in module globals apart from the store itself. After the response is produced
the middleware persists the session record and writes any cookie changes.

The remember-me cookies (``user_id`` and ``username``) are only a hint: a
session is rebuilt from them only after the pair is matched against the users
table, and the role always comes from the table.
"""
from __future__ import annotations

import logging
import secrets
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from ..config import Settings, settings
from ..constants import Role
from ..services import users as users_service

logger = logging.getLogger(__name__)

REMEMBER_USER_ID_COOKIE = "user_id"
REMEMBER_USERNAME_COOKIE = "username"


@dataclass(frozen=True)
class CurrentUser:
    id: int
    username: str
    role: Role

    def has_role(self, role: Role) -> bool:
        return self.role is role

    def has_any_role(self, *roles: Role) -> bool:
        return self.role in roles


@dataclass(frozen=True)
class CookieChange:
    value: Optional[str]  # None deletes the cookie
    max_age: Optional[int] = None


@dataclass
class AuthContext:
    """Per-request view of the caller's session and cookies."""

    cookies: Dict[str, str] = field(default_factory=dict)
    secure: bool = False
    client_id: str = "unknown"
    session_id: Optional[str] = None
    session: Dict[str, Any] = field(default_factory=dict)
    retired_session_ids: List[str] = field(default_factory=list)
    cookie_changes: Dict[str, CookieChange] = field(default_factory=dict)
    restorations: int = 0

    def cookie(self, name: str) -> Optional[str]:
        if name in self.cookie_changes:
            return self.cookie_changes[name].value
        return self.cookies.get(name)

    @property
    def remember_me(self) -> Optional[Tuple[str, str]]:
        user_id = self.cookie(REMEMBER_USER_ID_COOKIE)
        username = self.cookie(REMEMBER_USERNAME_COOKIE)
        if not user_id or not username:
            return None
        return user_id, username


class SessionStore:
    """In-process session records keyed by opaque identifiers."""

    def __init__(self, ttl_seconds: int, clock: Callable[[], float] = time.time) -> None:
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._records: Dict[str, Tuple[float, Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def new_id() -> str:
        return secrets.token_urlsafe(32)

    def _purge(self, now: float) -> None:
        stale = [sid for sid, (touched, _) in self._records.items() if now - touched > self.ttl_seconds]
        for sid in stale:
            del self._records[sid]

    def load(self, session_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            now = self.clock()
            self._purge(now)
            record = self._records.get(session_id)
            if record is None:
                return None
            return dict(record[1])

    def save(self, session_id: str, data: Mapping[str, Any]) -> None:
        with self._lock:
            self._records[session_id] = (self.clock(), dict(data))

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._records.pop(session_id, None)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class SessionManager:
    def __init__(
        self,
        store: SessionStore,
        *,
        cookie_name: str = "strata_session",
        timeout_seconds: int = 1800,
        remember_me_days: int = 30,
        cookie_secure: str = "auto",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.cookie_name = cookie_name
        self.timeout_seconds = timeout_seconds
        self.remember_me_seconds = remember_me_days * 86400
        self.cookie_secure = cookie_secure
        self.clock = clock

    @classmethod
    def from_settings(cls, config: Settings) -> "SessionManager":
        return cls(
            SessionStore(ttl_seconds=max(config.session_store_ttl_seconds, config.session_timeout_seconds)),
            cookie_name=config.session_cookie_name,
            timeout_seconds=config.session_timeout_seconds,
            remember_me_days=config.remember_me_days,
            cookie_secure=config.cookie_secure,
        )

    # --- request lifecycle ---

    def open(self, cookies: Mapping[str, str], *, https: bool = False, client_id: str = "unknown") -> AuthContext:
        secure = self.cookie_secure == "always" or (self.cookie_secure == "auto" and https)
        ctx = AuthContext(cookies=dict(cookies), secure=secure, client_id=client_id)
        session_id = cookies.get(self.cookie_name)
        if session_id:
            data = self.store.load(session_id)
            if data is not None:
                ctx.session_id = session_id
                ctx.session = data
        return ctx

    def persist(self, ctx: AuthContext) -> None:
        for retired in ctx.retired_session_ids:
            self.store.delete(retired)
        ctx.retired_session_ids = []

        if ctx.session:
            if ctx.session_id is None:
                ctx.session_id = self.store.new_id()
            self.store.save(ctx.session_id, ctx.session)
            if ctx.cookies.get(self.cookie_name) != ctx.session_id:
                ctx.cookie_changes[self.cookie_name] = CookieChange(ctx.session_id)
        else:
            if ctx.session_id is not None:
                self.store.delete(ctx.session_id)
                ctx.session_id = None
            if self.cookie_name in ctx.cookies:
                ctx.cookie_changes[self.cookie_name] = CookieChange(None)

    def apply_cookies(self, ctx: AuthContext, response: Response) -> None:
        for name, change in ctx.cookie_changes.items():
            if change.value is None:
                response.delete_cookie(name, path="/", secure=ctx.secure, httponly=True, samesite="lax")
            else:
                response.set_cookie(
                    name,
                    change.value,
                    max_age=change.max_age,
                    path="/",
                    secure=ctx.secure,
                    httponly=True,
                    samesite="lax",
                )

    def commit(self, ctx: AuthContext, response: Response) -> None:
        self.persist(ctx)
        self.apply_cookies(ctx, response)

    # --- identity ---

    def rotate(self, ctx: AuthContext) -> None:
        """Move the session data to a fresh identifier (fixation defence)."""
        if ctx.session_id is not None:
            ctx.retired_session_ids.append(ctx.session_id)
        ctx.session_id = self.store.new_id()

    def login(self, ctx: AuthContext, user_id: int, username: str, role: Role) -> None:
        self.rotate(ctx)
        now = self.clock()
        ctx.session.update(
            user_id=user_id,
            username=username,
            role=Role(role).value,
            last_activity=now,
            login_time=now,
        )
        self._set_remember_me(ctx, user_id, username)
        logger.info("User %s logged in", user_id)

    def logout(self, ctx: AuthContext) -> None:
        user_id = ctx.session.get("user_id")
        self._clear_remember_me(ctx)
        if ctx.session_id is not None:
            ctx.retired_session_ids.append(ctx.session_id)
        ctx.session_id = None
        ctx.session = {}
        if user_id is not None:
            logger.info("User %s logged out", user_id)

    def is_authenticated(self, ctx: AuthContext, db: Session) -> bool:
        if "user_id" not in ctx.session:
            self._restore_from_remember_me(ctx, db)

        last_activity = ctx.session.get("last_activity")
        if last_activity is not None and self.clock() - last_activity > self.timeout_seconds:
            logger.info("Session for user %s expired after inactivity", ctx.session.get("user_id"))
            self.logout(ctx)
            return False

        if "user_id" in ctx.session:
            ctx.session["last_activity"] = self.clock()
            return True
        return False

    def current_user(self, ctx: AuthContext, db: Session) -> Optional[CurrentUser]:
        if not self.is_authenticated(ctx, db):
            return None
        return CurrentUser(
            id=int(ctx.session["user_id"]),
            username=ctx.session["username"],
            role=Role(ctx.session["role"]),
        )

    # --- remember-me ---

    def _set_remember_me(self, ctx: AuthContext, user_id: int, username: str) -> None:
        ctx.cookie_changes[REMEMBER_USER_ID_COOKIE] = CookieChange(str(user_id), self.remember_me_seconds)
        ctx.cookie_changes[REMEMBER_USERNAME_COOKIE] = CookieChange(username, self.remember_me_seconds)

    def _clear_remember_me(self, ctx: AuthContext) -> None:
        for name in (REMEMBER_USER_ID_COOKIE, REMEMBER_USERNAME_COOKIE):
            if ctx.cookie(name) is not None or name in ctx.cookies:
                ctx.cookie_changes[name] = CookieChange(None)

    def _restore_from_remember_me(self, ctx: AuthContext, db: Session) -> bool:
        pair = ctx.remember_me
        if pair is None:
            return False
        raw_user_id, username = pair

        user = None
        if raw_user_id.isdigit():
            try:
                user = users_service.get_user_by_id_and_username(db, int(raw_user_id), username)
            except SQLAlchemyError:
                logger.exception("Session restoration lookup failed")
                return False

        if user is None:
            logger.warning("Discarding remember-me cookies that match no user (user_id=%r)", raw_user_id)
            self._clear_remember_me(ctx)
            return False

        self.rotate(ctx)
        now = self.clock()
        ctx.session.update(
            user_id=user.id,
            username=user.username,
            role=Role(user.role).value,
            last_activity=now,
            login_time=now,
        )
        ctx.restorations += 1
        logger.info("Restored session for user %s from remember-me cookies", user.id)
        return True


class SessionMiddleware(BaseHTTPMiddleware):
    """Open the caller's AuthContext before routing and commit it afterwards."""

    def __init__(self, app, *, manager: SessionManager) -> None:
        super().__init__(app)
        self.manager = manager

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        ctx = self.manager.open(
            request.cookies,
            https=request.url.scheme == "https",
            client_id=request.client.host if request.client else "unknown",
        )
        request.state.auth = ctx
        response = await call_next(request)
        self.manager.commit(ctx, response)
        return response


session_manager = SessionManager.from_settings(settings)
