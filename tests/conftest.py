# tests/conftest.py

import pytest
from config import Config


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False
    ADMIN_PASSWORD = "test-admin"


@pytest.fixture
def app_with_db(tmp_path):
    """
    Creates a new app instance for a test, sets up an in-memory database,
    and yields the app within an application context.
    """
    from app import create_app, db
    from app.calculator.store import CalculationConfig

    TestConfig.UPLOAD_FOLDER = str(tmp_path / "uploads")
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        CalculationConfig.reset()
        yield app  # The tests will run here
        CalculationConfig.reset()
        db.session.remove()
        db.drop_all()


@pytest.fixture
def seeded_app(app_with_db):
    """Same app with the default settings and commission tables seeded."""
    from app.seed import seed_data
    seed_data()
    return app_with_db


@pytest.fixture
def client(seeded_app):
    return seeded_app.test_client()


@pytest.fixture
def admin_client(client):
    response = client.post('/admin/login', json={'password': 'test-admin'})
    assert response.status_code == 200
    return client


@pytest.fixture
def salesperson(seeded_app):
    from app import db
    from app.models import User

    user = User(username='ana', name='Ana Souza', company_id='acme', monthly_basic_basket_goal=10)
    user.set_password('secret')
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture(autouse=True)
def reset_warn_once_flags(monkeypatch):
    """The calculator warns once per process about missing fields; each test starts fresh."""
    from app.calculator import payments, progress
    monkeypatch.setattr(payments, '_warned_missing_payment_type', False)
    monkeypatch.setattr(progress, '_warned_missing_goal_target', False)
    monkeypatch.setattr(progress, '_warned_missing_quantity', False)
