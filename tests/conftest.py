from datetime import date

import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app
from models.book import Book
from models.users import User
from utils.hashing import get_password_hash
from utils.tokenJWT import create_user_token

PASSWORD = "password123"
# bcrypt is slow on purpose; hash once per session
PASSWORD_HASH = get_password_hash(PASSWORD)


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
        SECRET_KEY="test-secret",
        ENV="test",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture()
def app(settings):
    application = create_app(settings)
    yield application
    application.state.engine.dispose()


@pytest.fixture()
def db(app):
    session = app.state.session_factory()
    yield session
    session.close()


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def _make_user(db, email, name, role_id="user"):
    user = User(email=email, name=name, password_hash=PASSWORD_HASH, role_id=role_id)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def alice(db):
    return _make_user(db, "alice@example.com", "Alice Reader")


@pytest.fixture()
def bob(db):
    return _make_user(db, "bob@example.com", "Bob Critic")


@pytest.fixture()
def admin(db):
    return _make_user(db, "admin@example.com", "Site Admin", role_id="admin")


def _make_book(db, title, author, isbn):
    book = Book(title=title, author=author, isbn=isbn, published_at=date(1925, 4, 10))
    db.add(book)
    db.commit()
    db.refresh(book)
    return book


@pytest.fixture()
def book_a(db):
    return _make_book(db, "The Great Gatsby", "F. Scott Fitzgerald", "978-0-7432-7356-5")


@pytest.fixture()
def book_b(db):
    return _make_book(db, "To Kill a Mockingbird", "Harper Lee", "978-0-06-112008-4")


@pytest.fixture()
def auth_headers(settings):
    def _headers(user):
        return {"Authorization": f"Bearer {create_user_token(user, settings)}"}
    return _headers
