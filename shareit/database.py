from sqlmodel import create_engine, Session
from sqlalchemy.pool import StaticPool
from dotenv import load_dotenv

import os

load_dotenv()

DATABASE_URL = os.getenv("POSTGRES_URI")
if not DATABASE_URL or DATABASE_URL == "":
    raise ValueError("DATABASE URL not set")

SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() in ("1", "true", "yes")

if DATABASE_URL.startswith("sqlite"):
    # one shared connection so an in-memory database survives across sessions
    engine = create_engine(
        DATABASE_URL,
        echo=SQL_ECHO,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    engine = create_engine(DATABASE_URL, echo=SQL_ECHO, pool_pre_ping=True)


def get_session():
    with Session(engine) as session:
        yield session
