import os
from pathlib import Path

from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker

from fitnessapp.db.models import Base

# Override with DB_PATH when needed.
DB_PATH = os.getenv("DB_PATH", "./data/fitnessapp.db")

connect_args = {"check_same_thread": False}


def _build_engine(db_path: str):
    db_parent = Path(db_path).expanduser().resolve().parent
    db_parent.mkdir(parents=True, exist_ok=True)
    database_url = f"sqlite:///{db_path}"
    return create_engine(database_url, connect_args=connect_args)


engine = _build_engine(DB_PATH)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def configure_database(db_path: str) -> None:
    global DB_PATH, engine
    DB_PATH = db_path
    engine = _build_engine(DB_PATH)
    SessionLocal.configure(bind=engine)


def create_tables() -> None:
    Base.metadata.create_all(bind=engine)
    # Lightweight forward-compatible column upgrades for SQLite without full migrations.
    with engine.begin() as conn:
        item_columns = {
            row[1] for row in conn.execute(text("PRAGMA table_info(checklist_items)")).fetchall()
        }
        if "kind" not in item_columns:
            conn.execute(text("ALTER TABLE checklist_items ADD COLUMN kind VARCHAR(16) NOT NULL DEFAULT 'DIET'"))
        if "slot" not in item_columns:
            conn.execute(text("ALTER TABLE checklist_items ADD COLUMN slot INTEGER NOT NULL DEFAULT 0"))

        user_columns = {row[1] for row in conn.execute(text("PRAGMA table_info(users)")).fetchall()}
        for badge_column in ("bronze_badges", "silver_badges", "gold_badges"):
            if badge_column not in user_columns:
                conn.execute(text(f"ALTER TABLE users ADD COLUMN {badge_column} INTEGER NOT NULL DEFAULT 0"))


def get_db():
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()
