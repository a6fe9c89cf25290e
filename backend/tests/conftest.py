from __future__ import annotations

import os
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine

from app.api.deps import get_db, get_gateway
from app.db import session as db_session_module
from app.db.session import get_session
from app.main import app
from app.models.order import Order, Product
from app.models.seller import Seller
from app.models.shopper import Shopper
from app.services.customer_sync import CustomerReconciler
from app.services.seller_subscription import SellerSubscriptionService
from app.services.shopper_subscription import ShopperSubscriptionService
from app.services.webhook import WebhookEventRouter
from tests.fakes import FakeGateway

VALID_CPF = "52998224725"
VALID_CNPJ = "11222333000181"


@pytest.fixture()
def db_engine(tmp_path):
    test_database_url = os.getenv("TEST_DATABASE_URL")
    if not test_database_url:
        db_path = tmp_path / f"test_{uuid.uuid4().hex}.db"
        test_database_url = f"sqlite:///{db_path}"

    engine = create_engine(test_database_url, connect_args={"check_same_thread": False})
    SQLModel.metadata.create_all(bind=engine)

    original_engine = db_session_module.engine
    db_session_module.engine = engine

    def override_dependency():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_dependency
    app.dependency_overrides[get_db] = override_dependency

    yield engine

    app.dependency_overrides.pop(get_session, None)
    app.dependency_overrides.pop(get_db, None)
    db_session_module.engine = original_engine
    engine.dispose()


@pytest.fixture()
def db_session(db_engine) -> Session:
    with Session(db_engine) as session:
        yield session


@pytest.fixture()
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def client(db_engine, fake_gateway) -> TestClient:
    app.dependency_overrides[get_gateway] = lambda: fake_gateway
    yield TestClient(app)
    app.dependency_overrides.pop(get_gateway, None)


@pytest.fixture()
def sleeps() -> list[float]:
    return []


@pytest.fixture()
def reconciler(db_session, fake_gateway, sleeps) -> CustomerReconciler:
    return CustomerReconciler(
        db_session,
        fake_gateway,
        settle_delay=3.0,
        repair_delay=5.0,
        sleep=sleeps.append,
    )


@pytest.fixture()
def seller_service(db_session, fake_gateway, reconciler) -> SellerSubscriptionService:
    return SellerSubscriptionService(db_session, fake_gateway, reconciler=reconciler)


@pytest.fixture()
def shopper_service(db_session, fake_gateway, reconciler) -> ShopperSubscriptionService:
    return ShopperSubscriptionService(db_session, fake_gateway, reconciler=reconciler)


@pytest.fixture()
def webhook_router(db_session, fake_gateway) -> WebhookEventRouter:
    return WebhookEventRouter(db_session, fake_gateway)


def make_seller(session: Session, **overrides) -> Seller:
    data = {
        "name": "Loja Teste",
        "email": "loja@example.com",
        "phone": "11988887777",
        "store_info": {
            "business_id": VALID_CNPJ,
            "email": "contato@loja.example.com",
            "name": {"pt": "Loja Exemplo"},
            "phone": "1133334444",
        },
    }
    data.update(overrides)
    seller = Seller(**data)
    session.add(seller)
    session.commit()
    session.refresh(seller)
    return seller


def make_order(session: Session, *, order_id: int | None = None, value: float | None = 123.45, **product_fields) -> Order:
    seller = make_seller(session)
    shopper = Shopper(
        seller_id=seller.id,
        name="Maria Compradora",
        email="maria@example.com",
        tax_id=VALID_CPF,
        mobile_phone="11977776666",
    )
    product_data = {"name": "Café do mês", "price": 150.0, "cycle": "MONTHLY"}
    product_data.update(product_fields)
    product = Product(seller_id=seller.id, **product_data)
    session.add_all([shopper, product])
    session.commit()

    order = Order(
        id=order_id,
        seller_id=seller.id,
        shopper_id=shopper.id,
        product_id=product.id,
        value=value,
    )
    session.add(order)
    session.commit()
    session.refresh(order)
    return order
