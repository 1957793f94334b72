"""Shared test fixtures for the lead pipeline test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, CSRF off)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- seed_data: superadmin + regular user, sales team, storefront businesses
- superadmin_client: test client logged in as the superadmin
"""

import pytest
from werkzeug.security import generate_password_hash

from leadpipe import create_app
from leadpipe.extensions import db as _db
from leadpipe.models.business import Business
from leadpipe.models.team_member import TeamMember
from leadpipe.models.user import User


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def seed_data(app, db_session):
    """Seed users, team members and businesses.

    Returns a dict with all created objects for easy access in tests.
    """
    # --- Users ---
    admin = User(
        email="admin@leadpipe.local",
        password_hash=generate_password_hash("admin123"),
        full_name="Admin User",
        is_superadmin=True,
    )
    other_admin = User(
        email="ops@leadpipe.local",
        password_hash=generate_password_hash("ops12345"),
        full_name="Ops Admin",
        is_superadmin=True,
    )
    merchant = User(
        email="merchant@example.com",
        password_hash=generate_password_hash("merchant123"),
        full_name="Merchant User",
        is_superadmin=False,
    )
    _db.session.add_all([admin, other_admin, merchant])

    # --- Sales team ---
    alice = TeamMember(
        name="Alice Seller", email="alice@leadpipe.local", role="SALES_REP"
    )
    bob = TeamMember(
        name="Bob Closer", email="bob@leadpipe.local", role="SALES_MANAGER"
    )
    retired = TeamMember(
        name="Carol Gone", email="carol@leadpipe.local", role="SALES_REP",
        is_active=False,
    )
    _db.session.add_all([alice, bob, retired])

    # --- Storefront businesses ---
    bakery = Business(
        name="Sunrise Bakery", slug="sunrise-bakery",
        email="owner@sunrise.test", subscription_plan="STARTER",
    )
    boutique = Business(
        name="Moon Boutique", slug="moon-boutique",
        email="hello@moon.test", subscription_plan="PRO",
    )
    # Two businesses sharing one email: auto-match must stay out of it.
    twin_a = Business(
        name="Twin Shop A", slug="twin-a", email="twins@shared.test",
    )
    twin_b = Business(
        name="Twin Shop B", slug="twin-b", email="twins@shared.test",
    )
    _db.session.add_all([bakery, boutique, twin_a, twin_b])

    _db.session.commit()

    return {
        "admin": admin,
        "admin_id": admin.id,
        "other_admin": other_admin,
        "merchant": merchant,
        "alice": alice,
        "bob": bob,
        "retired": retired,
        "bakery": bakery,
        "boutique": boutique,
        "twin_a": twin_a,
        "twin_b": twin_b,
    }


@pytest.fixture
def superadmin_client(client, seed_data):
    """Test client with a superadmin session."""
    response = client.post("/auth/login", json={
        "email": "admin@leadpipe.local", "password": "admin123",
    })
    assert response.status_code == 200
    return client
