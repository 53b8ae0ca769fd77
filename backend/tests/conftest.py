"""
Pytest fixtures for the TechStore commerce engine tests.

Provides an in-memory application, a clean database per test, and small
factories for users, products, discounts and placed orders.
"""

from datetime import timedelta

import pytest
from cryptography.fernet import Fernet

from techstore import create_app
from techstore.extensions import db
from techstore.models import Discount, Order, Product, User
from techstore.models.users import ROLE_CUSTOMER, ROLE_PRODUCT_MANAGER, ROLE_SALES_MANAGER
from techstore.services.card_vault import PaymentDetails
from techstore.services.checkout_service import CartLine
from techstore.time_utils import utcnow


TEST_KEY = Fernet.generate_key().decode("ascii")

VALID_CARD = {
    "card_number": "4242-4242-4242-4242",
    "card_holder": "Ada Lovelace",
    "expiry_month": "12",
    "expiry_year": "2030",
    "cvv": "123",
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CARD_ENCRYPTION_KEY': TEST_KEY,
        'DB_CONNECT_ATTEMPTS': 1,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def services(app, db_session):
    """The wired commerce services of the test app."""
    return app.extensions["commerce"]


@pytest.fixture(scope='function')
def make_user(db_session):
    counter = {"n": 0}

    def _make(role: str = ROLE_CUSTOMER, name: str | None = None) -> User:
        counter["n"] += 1
        user = User(
            name=name or f"{role} {counter['n']}",
            email=f"{role}{counter['n']}@techstore.test",
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture(scope='function')
def customer(make_user):
    return make_user(ROLE_CUSTOMER, "Customer One")


@pytest.fixture(scope='function')
def other_customer(make_user):
    return make_user(ROLE_CUSTOMER, "Customer Two")


@pytest.fixture(scope='function')
def product_manager(make_user):
    return make_user(ROLE_PRODUCT_MANAGER, "Product Manager")


@pytest.fixture(scope='function')
def sales_manager(make_user):
    return make_user(ROLE_SALES_MANAGER, "Sales Manager")


@pytest.fixture(scope='function')
def make_product(db_session):
    def _make(
        name: str = "Widget",
        price_cents: int | None = 10_000,
        stock: int = 10,
        cost_cents: int | None = None,
        price_approved: bool = True,
    ) -> Product:
        product = Product(
            name=name,
            price_cents=price_cents,
            cost_cents=cost_cents,
            stock=stock,
            price_approved=price_approved,
            is_visible=price_approved,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def make_discount(db_session):
    def _make(
        product: Product,
        discount_type: str,
        value: int,
        start_at=None,
        end_at=None,
        created_at=None,
    ) -> Discount:
        now = utcnow()
        discount = Discount(
            product_id=product.id,
            discount_type=discount_type,
            discount_value=value,
            start_at=start_at or now - timedelta(days=1),
            end_at=end_at or now + timedelta(days=1),
            created_at=created_at or now,
        )
        db_session.add(discount)
        db_session.commit()
        return discount

    return _make


@pytest.fixture(scope='function')
def place_order(services):
    """Check out ``[(product, quantity), ...]`` for a user through the real checkout path."""
    def _place(user: User, items, address: str = "1 Infinite Loop, Cupertino") -> Order:
        return services.checkout.create_order(
            user_id=user.id,
            cart_lines=[CartLine(product.id, quantity) for product, quantity in items],
            delivery_address=address,
            payment=PaymentDetails.from_payload(VALID_CARD),
        )

    return _place


@pytest.fixture(scope='function')
def deliver(services, product_manager):
    """Move a processing order to delivered via the operator path."""
    def _deliver(order: Order) -> Order:
        return services.orders.update_status(order.id, "delivered", product_manager)

    return _deliver


def actor_headers(user: User) -> dict:
    """Helper to create acting-user headers."""
    return {'X-User-Id': str(user.id)}


@pytest.fixture(scope='function')
def headers_for():
    return actor_headers
