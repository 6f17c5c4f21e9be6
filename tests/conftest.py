# tests/conftest.py
import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.events import EventBus
from app.core.security import get_password_hash
from app.db.models import Base, Branch, Product, User, UserRole
from app.db.session import build_engine
from app.schemas.auth import Principal
from app.services.authorization import AuthorizationGate
from app.services.purchase_query_service import PurchaseQueryService
from app.services.purchase_service import PurchaseService

TEST_DATABASE_URL = "sqlite://"
TEST_PASSWORD = "testpassword"

# One in-memory database shared by every connection of the test run
engine = build_engine(TEST_DATABASE_URL, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session")
def password_hash():
    return get_password_hash(TEST_PASSWORD)


@pytest.fixture()
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def seed(db_session, password_hash):
    """Two branches, three products and one user per role."""
    north = Branch(name="North", location="Harbour Road 1")
    south = Branch(name="South", location="Market Square 9")
    db_session.add_all([north, south])
    db_session.flush()

    products = [
        Product(name="Leather Wallet", item_code="WAL-001"),
        Product(name="Canvas Belt", item_code="BLT-002"),
        Product(name="Key Ring", item_code="KEY-003"),
    ]
    db_session.add_all(products)

    users = {
        "sales": User(email="sales.north@example.com", full_name="Sam North",
                      hashed_password=password_hash, role=UserRole.SALES, branch_id=north.id),
        "sales_other": User(email="sales.north2@example.com", full_name="Sasha North",
                            hashed_password=password_hash, role=UserRole.SALES, branch_id=north.id),
        "sales_south": User(email="sales.south@example.com", full_name="Sol South",
                            hashed_password=password_hash, role=UserRole.SALES, branch_id=south.id),
        "manager": User(email="manager@example.com", full_name="Morgan Manager",
                        hashed_password=password_hash, role=UserRole.MANAGER),
        "finance": User(email="finance@example.com", full_name="Frankie Finance",
                        hashed_password=password_hash, role=UserRole.FINANCE),
    }
    db_session.add_all(users.values())
    db_session.commit()

    return {
        "north": north,
        "south": south,
        "products": products,
        "users": users,
        "principals": {key: Principal.from_user(user) for key, user in users.items()},
    }


@pytest.fixture()
def principals(seed):
    return seed["principals"]


@pytest.fixture()
def product_ids(seed):
    return [product.id for product in seed["products"]]


@pytest.fixture()
def event_bus():
    return EventBus()


@pytest.fixture()
def purchase_service(db_session, event_bus):
    return PurchaseService(db_session, gate=AuthorizationGate(), event_bus=event_bus)


@pytest.fixture()
def query_service(db_session):
    return PurchaseQueryService(db_session, gate=AuthorizationGate())


@pytest.fixture()
def make_order(purchase_service, principals, product_ids):
    """Create an order for the North branch; quantities default to 10 and 5."""

    def _make(quantities=(10, 5), principal=None, suppliers=None):
        items = []
        for index, quantity in enumerate(quantities):
            item = {"product_id": product_ids[index], "quantity_requested": quantity}
            if suppliers:
                item["supplier_name"] = suppliers[index]
            items.append(item)
        return purchase_service.create_order({"items": items}, principal or principals["sales"])

    return _make


@pytest.fixture()
def session_factory(db_session):
    """Session factory bound to the test database, for dependency overrides."""
    return TestingSessionLocal
