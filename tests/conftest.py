import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import schoolstock.models  # noqa: F401
from schoolstock.core.config import settings
from schoolstock.core.deps import get_db
from schoolstock.core.security import hash_password
from schoolstock.db.base import Base, generate_id
from schoolstock.main import app
from schoolstock.models.category import Category
from schoolstock.models.user import User


@pytest.fixture()
def test_context():
    original_secret = settings.secret_key
    original_smtp_host = settings.smtp_host
    settings.secret_key = "test-secret-key"
    settings.smtp_host = None

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as client:
        yield client, session_local

    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)
    settings.secret_key = original_secret
    settings.smtp_host = original_smtp_host


@pytest.fixture()
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    db = session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def staff_user(db_session):
    user = User(
        id=generate_id(),
        email="storekeeper@school.edu",
        first_name="Ana",
        last_name="Cruz",
        hashed_password=hash_password("password123"),
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture()
def supplies_category(db_session):
    category = Category(id=generate_id(), name="Office Supplies", color="#2D5F3F")
    db_session.add(category)
    db_session.commit()
    return category
