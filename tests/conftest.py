import os

# base SQLite en mémoire partagée, avant tout import de app.*
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret"

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.api.auth_deps import get_current_user
from app.infra.db import engine, SessionLocal
from app.infra.models import (
    Base,
    BuyerORM,
    InstallmentORM,
    InstallmentStatus,
    PaymentType,
    PropertyORM,
    UserORM,
    UserRole,
)
from app.main import app
from app.services.sales_service import create_sale
from app.services.security import hash_password

TEST_PASSWORD = "motdepasse123"


@pytest.fixture(scope="session")
def password_hash():
    """bcrypt est lent: un seul hash pour toute la session"""
    return hash_password(TEST_PASSWORD)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def admin_user(db, password_hash):
    user = UserORM(
        name="Awa Diop",
        email="admin@agence.sn",
        password_hash=password_hash,
        role=UserRole.ADMIN,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def buyer(db):
    b = BuyerORM(name="Moussa Ndiaye", phone="0771234567", email="moussa@example.sn")
    db.add(b)
    db.commit()
    return b


@pytest.fixture
def make_property(db):
    def _make(title="Villa Almadies", price=Decimal("25500000")):
        p = PropertyORM(title=title, address="Route des Almadies, Dakar", price=price)
        db.add(p)
        db.commit()
        return p

    return _make


@pytest.fixture
def installment_sale(db, admin_user, buyer, make_property):
    """Vente échelonnée en 3 échéances de 850 000, vendue le 15/01/2024"""
    sale = create_sale(
        db,
        property_id=make_property().id,
        buyer_id=buyer.id,
        user_id=admin_user.id,
        total_price=Decimal("2550000"),
        payment_type=PaymentType.INSTALLMENTS,
        sale_date=date(2024, 1, 15),
        monthly_payment=Decimal("850000"),
        total_installments=3,
    )
    db.commit()
    return sale


@pytest.fixture
def add_installment(db):
    """Ajoute une échéance à une vente existante, à une date donnée"""
    def _add(sale, due_date, amount=Decimal("850000"), status=InstallmentStatus.PENDING):
        number = max((i.number for i in sale.installments), default=0) + 1
        inst = InstallmentORM(
            sale_id=sale.id,
            number=number,
            due_date=due_date,
            amount=amount,
            status=status,
        )
        if status == InstallmentStatus.PAID:
            inst.paid_date = due_date
            inst.paid_amount = amount
        db.add(inst)
        db.commit()
        db.refresh(sale)
        return inst

    return _add


@pytest.fixture
def client(admin_user):
    app.dependency_overrides[get_current_user] = lambda: admin_user
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(db):
    app.dependency_overrides.clear()
    return TestClient(app)
