"""Seed reference data, an optional admin account and a few sample books.

Safe to run repeatedly: existing rows are left untouched.

    ADMIN_EMAIL=admin@example.com ADMIN_PASSWORD=secret123 python seed_db.py
"""
import logging
import os
import sys
from datetime import date

from dotenv import load_dotenv

# Add 'backend' folder to Python path
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from config import Settings
from database import build_engine, build_session_factory, init_db
from models.book import Book
from models.users import User
from utils.hashing import get_password_hash

logger = logging.getLogger(__name__)

SAMPLE_BOOKS = [
    ("The Great Gatsby", "F. Scott Fitzgerald", "978-0-7432-7356-5", "A classic American novel set in the Jazz Age", date(1925, 4, 10)),
    ("To Kill a Mockingbird", "Harper Lee", "978-0-06-112008-4", "A gripping tale of racial injustice", date(1960, 7, 11)),
    ("Nineteen Eighty-Four", "George Orwell", "978-0-452-28423-4", "A dystopian novel about surveillance", date(1949, 6, 8)),
    ("Pride and Prejudice", "Jane Austen", "978-0-14-143951-8", None, date(1813, 1, 28)),
]


def seed(session, admin_email=None, admin_password=None):
    """Insert missing sample books and the admin account. Returns counts of created rows."""
    created = {"books": 0, "admins": 0}

    for title, author, isbn, description, published_at in SAMPLE_BOOKS:
        if session.query(Book.id).filter(Book.isbn == isbn).first() is None:
            session.add(Book(title=title, author=author, isbn=isbn,
                             description=description, published_at=published_at))
            created["books"] += 1

    if admin_email and admin_password:
        email = admin_email.strip().lower()
        if session.query(User.id).filter(User.email == email).first() is None:
            session.add(User(email=email, password_hash=get_password_hash(admin_password),
                             name="Administrator", role_id="admin"))
            created["admins"] += 1
    else:
        logger.warning("ADMIN_EMAIL / ADMIN_PASSWORD not set; no admin account seeded")

    session.commit()
    return created


def main():
    load_dotenv()
    logging.basicConfig(level=logging.INFO)
    settings = Settings()
    engine = build_engine(settings.database_url)
    session_factory = build_session_factory(engine)
    # Tables and roles first
    init_db(engine, session_factory)

    session = session_factory()
    try:
        created = seed(session, os.getenv("ADMIN_EMAIL"), os.getenv("ADMIN_PASSWORD"))
    finally:
        session.close()
    logger.info("Seeding finished: %s", created)


if __name__ == "__main__":
    main()
