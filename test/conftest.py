"""
Gram Panchayat - test configuration and fixtures
"""
import datetime as dt
import os
import tempfile
from types import SimpleNamespace

# Set testing environment before the package reads its settings
_tmp = tempfile.mkdtemp(prefix="gram-panchayat-")
os.environ["DB_URL"] = f"sqlite:///{os.path.join(_tmp, 'default.db')}"
os.environ["SEED_DEFAULT_SERVICES"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-for-testing"
os.environ["STRICT_ROLES"] = "false"
os.environ.pop("ADMIN_EMAIL", None)

import pytest
from faker import Faker
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from gram_panchayat.api.deps import get_db
from gram_panchayat.db import crud
from gram_panchayat.db.session import init_db, make_engine
from gram_panchayat.main import app
from gram_panchayat.services.accounts import AccountService
from gram_panchayat.services.catalog import ServiceCatalog
from gram_panchayat.services.identity import IdentityProvider
from gram_panchayat.services.lifecycle import ApplicationLifecycle
from gram_panchayat.services.reports import ReportService
from gram_panchayat.services.roles import Role, RoleResolver

fake = Faker()

FIXED_NOW = dt.datetime(2024, 5, 1, 10, 30)


class FixedClock:
    def __init__(self, now: dt.datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += dt.timedelta(**kwargs)


def build_services(db, clock=None) -> SimpleNamespace:
    clock = clock or FixedClock()
    identity = IdentityProvider(db)
    roles = RoleResolver(db, identity)
    catalog = ServiceCatalog(db, roles)
    return SimpleNamespace(
        db=db,
        clock=clock,
        identity=identity,
        roles=roles,
        catalog=catalog,
        lifecycle=ApplicationLifecycle(db, roles, catalog, clock=clock),
        accounts=AccountService(db, identity, roles),
        reports=ReportService(db, roles, clock=clock),
    )


def make_principal(identity: IdentityProvider, roles: RoleResolver, role: Role | None = Role.CITIZEN) -> str:
    principal_id = identity.create_principal(fake.unique.email(), "secret123", {"name": fake.name()})
    if role is not None:
        roles.assign(principal_id, role)
    return principal_id


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def svc(db):
    return build_services(db)


@pytest.fixture
def citizen(svc) -> str:
    return make_principal(svc.identity, svc.roles, Role.CITIZEN)


@pytest.fixture
def other_citizen(svc) -> str:
    return make_principal(svc.identity, svc.roles, Role.CITIZEN)


@pytest.fixture
def staff_member(svc) -> str:
    return make_principal(svc.identity, svc.roles, Role.STAFF)


@pytest.fixture
def admin(svc) -> str:
    return make_principal(svc.identity, svc.roles, Role.ADMINISTRATOR)


@pytest.fixture
def birth_certificate(db):
    return crud.create_service(
        db, id="birth-certificate", name="Birth Certificate", category="certificate", fee=50,
        description="Official birth certificate", requirements="Hospital birth record",
    )


@pytest.fixture
def trade_license(db):
    return crud.create_service(
        db, id="trade-license", name="Trade License", category="license", fee=500,
        description="New or renewed trade license", requirements="Business registration",
    )


@pytest.fixture
def client(session_factory):
    """Test client with database override"""
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def headers_for(svc):
    def _headers(principal_id: str) -> dict:
        return {"Authorization": f"Bearer {svc.identity.issue_token(principal_id)}"}
    return _headers
