from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from helpdesk.accounts.repository import AccountRepository
from helpdesk.accounts.service import AccountService
from helpdesk.api.routes import auth, health, orgs, tickets
from helpdesk.audit.repository import AuditLogRepository
from helpdesk.audit.sink import AuditSink
from helpdesk.core.config import Settings, get_settings
from helpdesk.core.logging import configure_logging, init_tracer, shutdown_tracer
from helpdesk.core.security import PasswordHasher, TokenService
from helpdesk.db.session import create_engine, create_session_factory, ensure_schema
from helpdesk.middleware import RequestIdMiddleware, register_error_handlers
from helpdesk.orgs.membership import MembershipResolver
from helpdesk.orgs.repository import OrganizationRepository
from helpdesk.orgs.service import OrganizationService
from helpdesk.tickets.repository import TicketRepository
from helpdesk.tickets.service import TicketService


@dataclass(slots=True)
class Services:
    accounts: AccountService
    organizations: OrganizationService
    tickets: TicketService


def build_services(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    *,
    hasher: PasswordHasher | None = None,
    tokens: TokenService | None = None,
) -> Services:
    """Wire repositories and services around one session factory."""

    audit = AuditSink()
    memberships = MembershipResolver(session_factory)
    organizations = OrganizationService(
        repository=OrganizationRepository(session_factory),
        memberships=memberships,
        audit=audit,
        audit_log=AuditLogRepository(session_factory),
    )
    accounts = AccountService(
        repository=AccountRepository(session_factory),
        organizations=organizations,
        hasher=hasher or PasswordHasher(rounds=settings.password_hash_rounds),
        tokens=tokens or TokenService.from_settings(settings),
        audit=audit,
    )
    ticket_service = TicketService(
        repository=TicketRepository(session_factory),
        memberships=memberships,
        audit=audit,
    )
    return Services(accounts=accounts, organizations=organizations, tickets=ticket_service)


def install_services(app: FastAPI, services: Services) -> None:
    app.state.account_service = services.accounts
    app.state.organization_service = services.organizations
    app.state.ticket_service = services.tickets


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)

    engine = create_engine(settings.postgres_dsn, pool_pre_ping=True)
    if settings.create_schema_on_startup:
        await ensure_schema(engine)
    install_services(app, build_services(settings, create_session_factory(engine)))
    logger.info("%s started (%s)", settings.app_name, settings.environment)
    try:
        yield
    finally:
        await engine.dispose()
        shutdown_tracer(tracer_provider)


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan if use_lifespan else None)
    app.add_middleware(RequestIdMiddleware)
    register_error_handlers(app)
    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(orgs.router)
    app.include_router(tickets.router)
    return app


app = create_app()
