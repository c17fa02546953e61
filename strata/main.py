import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import admin, announcements, auth, budgets, documents, levies, maintenance, owners, system, units
from .auth.sessions import SessionMiddleware, session_manager
from .config import init_db, settings
from .core.errors import register_exception_handlers
from .core.logging import configure_logging
from .core.security import SecurityHeadersMiddleware, log_security_warnings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level, settings.log_format)
    init_db()
    log_security_warnings(settings)
    logger.info("Strata portal started")
    yield


app = FastAPI(title="Strata Portal", lifespan=lifespan)

app.add_middleware(SessionMiddleware, manager=session_manager)
app.add_middleware(SecurityHeadersMiddleware, config=settings)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(admin.router)
app.include_router(units.router)
app.include_router(owners.router)
app.include_router(budgets.router)
app.include_router(levies.router)
app.include_router(maintenance.router)
app.include_router(documents.router)
app.include_router(announcements.router)
app.include_router(system.router)
