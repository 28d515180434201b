# tests/conftest.py
import threading
from decimal import Decimal

import pytest
from flask_login import FlaskLoginClient

from config import Config
from quotedesk import create_app, db
from quotedesk.models import Business, CatalogItem, User
from quotedesk.quotations.numbering import NumberCollision, parse_suffix


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-key"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    QUOTATION_NUMBER_BACKOFF_MS = 0
    LOG_LEVEL = "DEBUG"


class MemoryQuotationStore:
    """Numbering store with the same uniqueness guarantee as the quotations table."""

    def __init__(self):
        self._lock = threading.Lock()
        self.rows = {}

    def last_number(self, tenant_id, prefix):
        with self._lock:
            numbers = [n for n in self.rows.get(tenant_id, ()) if parse_suffix(n, prefix) is not None]
        if not numbers:
            return None
        return max(numbers, key=lambda n: parse_suffix(n, prefix))

    def exists(self, tenant_id, number):
        with self._lock:
            return number in self.rows.get(tenant_id, ())

    def insert(self, tenant_id, number):
        with self._lock:
            taken = self.rows.setdefault(tenant_id, set())
            if number in taken:
                raise NumberCollision(number)
            taken.add(number)
        return number


@pytest.fixture
def memory_store():
    return MemoryQuotationStore()


@pytest.fixture
def app():
    app = create_app(TestConfig)
    app.test_client_class = FlaskLoginClient

    # requests push their own app context, so each one resolves its own user
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.drop_all()


def _save(app, obj):
    with app.app_context():
        db.session.add(obj)
        db.session.commit()
        db.session.refresh(obj)
        db.session.expunge(obj)
    return obj


@pytest.fixture
def make_business(app):
    def make(name="Acme Ltd", email="billing@acme.test", prefix="QT", tax_rate="0"):
        return _save(app, Business(name=name, email=email, quotation_prefix=prefix,
                                   tax_rate=Decimal(tax_rate), currency="USD"))
    return make


@pytest.fixture
def make_user(app):
    def make(business, email="owner@acme.test", password="secret123"):
        u = User(email=email, name="Owner", business_id=business.id, is_active=True)
        u.set_password(password)
        return _save(app, u)
    return make


@pytest.fixture
def make_item(app):
    def make(business, name, price, item_type="product", tax_name=None, tax_rate=None):
        return _save(app, CatalogItem(
            business_id=business.id,
            name=name,
            type=item_type,
            description=f"{name} description",
            price=Decimal(price),
            currency="USD",
            tax_name=tax_name,
            tax_rate=Decimal(tax_rate) if tax_rate is not None else None,
            is_active=True,
        ))
    return make


@pytest.fixture
def count(app):
    def rows(model, **filters):
        with app.app_context():
            return model.query.filter_by(**filters).count()
    return rows


@pytest.fixture
def business(make_business):
    return make_business()


@pytest.fixture
def user(make_user, business):
    return make_user(business)


@pytest.fixture
def client(app, user):
    return app.test_client(user=user)


@pytest.fixture
def anon_client(app):
    return app.test_client()


@pytest.fixture
def other_client(app, make_business, make_user):
    """Logged-in client of a second, unrelated business."""
    other = make_business(name="Other Co", email="hi@other.test", prefix="EST")
    return app.test_client(user=make_user(other, email="owner@other.test"))


@pytest.fixture
def widget(make_item, business):
    return make_item(business, "Widget", "100.00")


@pytest.fixture
def installation(make_item, business):
    return make_item(business, "Installation", "50.00", item_type="service")


@pytest.fixture
def sample_items(widget, installation):
    return [
        {"item_id": widget.id, "quantity": 2, "discount": 10, "tax": 16},
        {"item_id": installation.id, "quantity": 1, "discount": 0, "tax": 0},
    ]


@pytest.fixture
def quotation_payload(sample_items):
    return {
        "customer": {"name": "Jane Buyer", "email": "jane@buyer.test",
                     "address": {"city": "Nairobi", "country": "Kenya"}},
        "items": sample_items,
        "valid_until": "2030-01-31",
        "notes": "Delivery within 2 weeks",
        "terms": "50% upfront\nBalance on delivery",
    }
