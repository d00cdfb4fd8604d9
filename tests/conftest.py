from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import event

from helpdesk.accounts.models import SignupResult, User
from helpdesk.core.config import Settings
from helpdesk.core.security import PasswordHasher, TokenService
from helpdesk.db.session import create_engine, create_session_factory, ensure_schema
from helpdesk.main import Services, build_services
from helpdesk.orgs.policy import Role

PASSWORD = "correct-horse-battery"


class TickingClock:
    """Deterministic clock advancing one second per reading."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 7, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@dataclass
class Tenant:
    organization_id: str
    owner: User
    admin: User
    agent: User
    viewer: User

    def user(self, role: Role) -> User:
        return {
            Role.OWNER: self.owner,
            Role.ADMIN: self.admin,
            Role.AGENT: self.agent,
            Role.VIEWER: self.viewer,
        }[role]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        postgres_dsn="sqlite+aiosqlite://",
        create_schema_on_startup=False,
        password_hash_rounds=4,
        jwt_access_secret="test-access-secret-0123456789abcdef",
        jwt_refresh_secret="test-refresh-secret-0123456789abcdef",
    )


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'helpdesk.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # SQLite needs FK enforcement switched on per connection; BEGIN is
        # emitted explicitly so SAVEPOINTs nest inside a real transaction.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(connection):
        connection.exec_driver_sql("BEGIN")

    await ensure_schema(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def services(settings, session_factory, clock) -> Services:
    tokens = TokenService.from_settings(settings)
    built = build_services(settings, session_factory, hasher=PasswordHasher(rounds=4), tokens=tokens)
    built.tickets.clock = clock
    built.organizations.clock = clock
    return built


@pytest.fixture
def signup(services):
    async def _signup(email: str, *, name: str = "Test User", org_name: str = "Acme Support") -> SignupResult:
        return await services.accounts.signup(
            email=email,
            password=PASSWORD,
            name=name,
            organization_name=org_name,
        )

    return _signup


@pytest_asyncio.fixture
async def tenant(services, signup) -> Tenant:
    owner = await signup("owner@acme.test", name="Olive Owner")
    organization_id = owner.organization.id

    members: dict[Role, User] = {}
    for role in (Role.ADMIN, Role.AGENT, Role.VIEWER):
        result = await signup(f"{role.value.lower()}@acme.test", org_name=f"{role.value.title()} Home")
        await services.organizations.add_member(
            actor_id=owner.user.id,
            organization_id=organization_id,
            email=result.user.email,
            role=role,
        )
        members[role] = result.user

    return Tenant(
        organization_id=organization_id,
        owner=owner.user,
        admin=members[Role.ADMIN],
        agent=members[Role.AGENT],
        viewer=members[Role.VIEWER],
    )
