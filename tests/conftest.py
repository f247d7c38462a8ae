from datetime import datetime, timedelta

import pytest
from flask_jwt_extended import create_access_token

from stuff_library import create_app
from stuff_library.config import TestConfig
from stuff_library.extensions import db
from stuff_library.models import User, Item


class _Config(TestConfig):
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length-for-hs256"


@pytest.fixture
def app():
    app = create_app(_Config)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def lender(app):
    u = User(name="Lena", email="lena@example.com", phone="(510) 555-1234")
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture
def borrower(app):
    u = User(name="Bo", email="bo@example.com", phone=None)
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture
def stranger(app):
    u = User(name="Sam", email="sam@example.com")
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture
def item(app, lender):
    i = Item(name="Cordless Drill", owner_id=lender.id)
    db.session.add(i)
    db.session.commit()
    return i


@pytest.fixture
def return_date():
    return datetime.utcnow() + timedelta(days=7)


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(identity=str(user.id))}"}

    return _headers
