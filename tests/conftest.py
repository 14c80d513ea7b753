import os

# Debe fijarse antes de importar app.*: el engine se crea al importar
os.environ["DATABASE_URL"] = "sqlite://"

import pytest

from app.database import Base, SessionLocal, engine


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
