# barbershop/db.py

from sqlmodel import SQLModel, create_engine, Session

from .config import DATABASE_URL

connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}  # required for SQLite + FastAPI

# Engine = connection to the database
engine = create_engine(
    DATABASE_URL,
    echo=False,          # set to True to see SQL
    connect_args=connect_args,
)


def create_db_and_tables(bind=None):
    # models must be imported so their tables and guards are registered
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)


def session_factory() -> Session:
    return Session(engine)


# Dependency: one session per request
def get_session():
    with Session(engine) as session:
        yield session
