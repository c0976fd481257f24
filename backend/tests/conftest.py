import os
import tempfile

# Point the app at throwaway storage before storefront reads its settings
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="storefront-logs-"))
os.environ.setdefault("MIRROR_DIR", tempfile.mkdtemp(prefix="storefront-mirror-"))
os.environ.setdefault("EMAIL_RELAY_URL", "")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.database import Base, get_db, init_db
from storefront.main import app as fastapi_app
from storefront.schemas.schemas import CartLine, ShippingForm
from storefront.utils import rate_limiter

engine = create_engine(
    "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

USER_ID = "user-123"


@pytest.fixture(autouse=True)
def setup_db():
    init_db(bind=engine)
    rate_limiter.reset()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def client():
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = override_get_db
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def shipping():
    return ShippingForm(
        name="Kaviya Murugan",
        email="kaviya@example.com",
        phone="98765 43210",
        address="12 Gandhi Street",
        city="Chennai",
        state="Tamil Nadu",
        pincode="600001",
    )


@pytest.fixture
def cart():
    # subtotal 850
    return [
        CartLine(product_id="prod-1", quantity=2, price=Decimal("300"), size="M", color="Red", name="Handmade Scarf"),
        CartLine(product_id="prod-2", quantity=1, price=Decimal("250"), name="Clay Mug"),
    ]


@pytest.fixture
def checkout_payload(shipping, cart):
    return {
        "shipping": shipping.model_dump(),
        "items": [line.model_dump(mode="json") for line in cart],
    }


@pytest.fixture
def headers():
    return {"x-user-id": USER_ID}
