"""
Pytest fixtures for liquorpos backend tests.

Provides an in-memory database, the three store locations, staff users
with session tokens, and a small catalog with stock on the floor.
"""

import pytest

from liquorpos import create_app
from liquorpos.extensions import db
from liquorpos.models import User
from liquorpos.services import catalog_service, location_service, session_service
from liquorpos.services.auth_service import hash_password
from liquorpos.services.query_cache import NullCache
from liquorpos.services.stock_service import apply_delta


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
    })
    # Every lookup hits the database unless a test injects its own cache
    app.extensions['query_cache'] = NullCache()

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Fresh data for each test, schema kept."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture
def locations(db_session):
    """{"floor": loc, "backroom": loc, "warehouse": loc}"""
    created = location_service.seed_default_locations(cache=NullCache())
    db_session.commit()
    return {loc.type: loc for loc in created}


def _user(db_session, email, role, approved=True):
    user = User(
        email=email,
        full_name=email.split("@")[0].title(),
        password_hash=hash_password("Password123"),
        role=role,
        is_approved=approved,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def admin_user(db_session):
    return _user(db_session, "admin@lastkings.test", "admin")


@pytest.fixture
def manager_user(db_session):
    return _user(db_session, "manager@lastkings.test", "manager")


@pytest.fixture
def staff_user(db_session):
    return _user(db_session, "staff@lastkings.test", "staff")


def _headers(user):
    _session, token = session_service.create_session(user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_user):
    return _headers(admin_user)


@pytest.fixture
def manager_headers(manager_user):
    return _headers(manager_user)


@pytest.fixture
def staff_headers(staff_user):
    return _headers(staff_user)


@pytest.fixture
def catalog(db_session):
    """
    Two variants:
      whisky: Jameson 750ml spirits, KES 3000, UPC 5011007003005
      beer:   Tusker 500ml beer,     KES 250,  UPC 6161101600019
    """
    jameson = catalog_service.create_product(
        brand="Jameson",
        category="Whiskey",
        name="Jameson Irish Whiskey",
        variants=[{"size_ml": 750, "price": "3000.00", "cost": "2100.00", "upc": "5011007003005"}],
        cache=NullCache(),
    )
    tusker = catalog_service.create_product(
        brand="Tusker",
        category="Beer",
        name="Tusker Lager",
        product_type="beverage",
        variants=[{"size_ml": 500, "price": "250.00", "cost": "160.00", "upc": "6161101600019"}],
        cache=NullCache(),
    )
    return {"whisky": jameson.variants[0], "beer": tusker.variants[0]}


@pytest.fixture
def stocked(db_session, locations, catalog):
    """Floor: 5 whisky, 24 beer. Warehouse: 12 whisky."""
    floor, warehouse = locations["floor"], locations["warehouse"]
    apply_delta(catalog["whisky"].id, floor.id, None, 5, "adjustment")
    apply_delta(catalog["beer"].id, floor.id, None, 24, "adjustment")
    apply_delta(catalog["whisky"].id, warehouse.id, None, 12, "adjustment")
    db_session.commit()
    return catalog

