import os
import tempfile
from dataclasses import dataclass

# CRITICAL: Set environment variables BEFORE any app imports
# These must be set before app.config.settings is loaded
_TEST_DB_PATH = os.path.join(tempfile.gettempdir(), "test_passport_inquiries.db")
os.environ["SECRET_KEY"] = "test-secret-key-1234567890"
os.environ["DATABASE_URL"] = f"sqlite+pysqlite:///{_TEST_DB_PATH}"
os.environ["ENVIRONMENT"] = "test"
os.environ["API_V1_STR"] = "/api"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from app import models  # noqa: E402
from app.api import deps  # noqa: E402
from app.database import Base, get_db  # noqa: E402
from app.database import engine as app_engine  # noqa: E402
from app.main import app  # noqa: E402

# Use the same engine that the app uses
TEST_ENGINE = app_engine

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=TEST_ENGINE, future=True)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="function", autouse=True)
def setup_test_database():
    """Fresh schema per test; per-test dependency overrides are discarded afterwards."""
    original_overrides = dict(app.dependency_overrides)

    Base.metadata.drop_all(bind=TEST_ENGINE)
    Base.metadata.create_all(bind=TEST_ENGINE)

    yield

    app.dependency_overrides.clear()
    app.dependency_overrides.update(original_overrides)

    Base.metadata.drop_all(bind=TEST_ENGINE)


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    return TestClient(app)


@dataclass(frozen=True)
class Party:
    org_id: int
    user_id: int
    email: str
    role: models.RoleName


@dataclass(frozen=True)
class Parties:
    buyer: Party
    supplier: Party
    outsider: Party
    product_id: int
    requirement_id: int
    match_id: int


def _seed_party(db, *, code: str, name: str, role: models.Role, email: str) -> Party:
    org = models.Organization(code=code, name=name, type="COMPANY", is_active=True)
    db.add(org)
    db.flush()
    user = models.User(email=email, name=name, role_id=role.id, organization_id=org.id, active=True)
    db.add(user)
    db.flush()
    return Party(org_id=int(org.id), user_id=int(user.id), email=email, role=role.name)


@pytest.fixture
def parties(db_session) -> Parties:
    """Buyer (customer), supplier (operator) and an unrelated organization."""
    roles = {}
    for role_name in models.RoleName:
        role = models.Role(name=role_name, description=role_name.value)
        db_session.add(role)
        roles[role_name] = role
    db_session.flush()

    buyer = _seed_party(
        db_session,
        code="BYR",
        name="Buyer Co",
        role=roles[models.RoleName.customer],
        email="buyer@test.com",
    )
    supplier = _seed_party(
        db_session,
        code="SUP",
        name="Supplier Co",
        role=roles[models.RoleName.operator],
        email="supplier@test.com",
    )
    outsider = _seed_party(
        db_session,
        code="OUT",
        name="Outsider Co",
        role=roles[models.RoleName.customer],
        email="outsider@test.com",
    )

    product = models.MarketplaceProduct(organization_id=supplier.org_id, listing_title="Cell module")
    requirement = models.BuyerRequirement(organization_id=buyer.org_id, title="Battery cells")
    db_session.add_all([product, requirement])
    db_session.flush()
    match = models.MatchResult(
        marketplace_product_id=product.id,
        buyer_requirement_id=requirement.id,
        supplier_org_id=supplier.org_id,
        buyer_org_id=buyer.org_id,
        total_score=87,
    )
    db_session.add(match)
    db_session.commit()

    return Parties(
        buyer=buyer,
        supplier=supplier,
        outsider=outsider,
        product_id=int(product.id),
        requirement_id=int(requirement.id),
        match_id=int(match.id),
    )


def _stub_user(party: Party):
    class StubUser:
        def __init__(self):
            self.id = party.user_id
            self.email = party.email
            self.active = True
            self.organization_id = party.org_id
            self.role = type("Role", (), {"name": party.role})()

    return StubUser()


@pytest.fixture
def login_as():
    """Authenticate subsequent requests as the given party."""

    def _login(party: Party) -> None:
        app.dependency_overrides[deps.get_current_user] = lambda: _stub_user(party)

    return _login
