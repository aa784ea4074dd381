from datetime import datetime, timedelta, timezone

import pytest

from coupon_distributor import create_app
from coupon_distributor.auth import create_admin
from coupon_distributor.db import connect, get_db, init_db, init_schema
from coupon_distributor.engine import AllocationEngine
from coupon_distributor.models import Coupon
from coupon_distributor.store import CouponStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_coupon(store, code, expires_in=timedelta(days=1), now=NOW, **fields):
    coupon = Coupon(
        code=code,
        description=fields.pop('description', 'Coupon {}'.format(code)),
        expiry_date=now + expires_in,
        **fields
    )
    return store.insert(coupon, now=fields.get('created_at') or now)


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / 'coupons.db')


@pytest.fixture
def conn(db_path):
    conn = connect(db_path)
    init_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def store(conn):
    return CouponStore(conn)


@pytest.fixture
def engine(store):
    return AllocationEngine(store)


@pytest.fixture
def app(db_path):
    app = create_app({
        'TESTING': True,
        'DATABASE': db_path,
        'SECRET_KEY': 'test-secret',
        'ENVIRONMENT': 'development',
        'TRUST_PROXY': True,
        'RATE_LIMIT_MAX': 100,
        'CLAIM_CONFLICT_RETRIES': 0,
        'ALLOW_ADMIN_SIGNUP': True,
        'LOG_LEVEL': 'WARNING',
    })
    with app.app_context():
        init_db()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(app):
    with app.app_context():
        create_admin(get_db(), 'admin', 'admin@example.com', 'admin123')
    client = app.test_client()
    response = client.post('/auth/login', json={'username': 'admin', 'password': 'admin123'})
    assert response.status_code == 200
    return client
