from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import DATABASE_URL, SQL_ECHO


def _engine_options(url: str) -> dict:
    """
    Opciones extra del engine según el backend.

    SQLite (tests / desarrollo local) necesita compartir la conexión entre los
    hilos del threadpool de FastAPI; en memoria además debe ser una única
    conexión o cada sesión vería una base de datos vacía.
    """
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}

    options = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        options["poolclass"] = StaticPool
    return options


engine = create_engine(DATABASE_URL, echo=SQL_ECHO, **_engine_options(DATABASE_URL))

if engine.dialect.name == "sqlite":
    # SQLite ignora ON DELETE CASCADE salvo que se activen las foreign keys
    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base declarativa compartida por models.py
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
