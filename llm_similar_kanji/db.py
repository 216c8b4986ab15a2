from __future__ import annotations
from sqlalchemy import create_engine, Date, Integer, String, DateTime, Text
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session, Mapped, mapped_column
import datetime
import json
from typing import Optional, Any, List

from .config import API_KEY_STORE_KEY, Settings, load_settings
from .errors import ConfigError


class Base(DeclarativeBase):
    pass
DB_PATH: str = load_settings().db_path
engine = create_engine(f"sqlite:///{DB_PATH}")
# Prevent attribute expiration on commit so returned objects remain accessible
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


class KeyValue(Base):
    """Plain string key-value table. Expiry is layered on top by cache.TTLCache."""
    __tablename__ = "kv_store"
    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=lambda: datetime.datetime.now(datetime.UTC), onupdate=lambda: datetime.datetime.now(datetime.UTC))


class DailyProgress(Base):
    __tablename__ = "daily_progress"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user: Mapped[str] = mapped_column(String, nullable=False)
    date: Mapped[datetime.date] = mapped_column(Date, default=lambda: datetime.date.today())
    rounds_answered: Mapped[int] = mapped_column(Integer, default=0)
    correct_answers: Mapped[int] = mapped_column(Integer, default=0)


class Progress(Base):
    __tablename__ = "progress"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    total_reviews: Mapped[int] = mapped_column(Integer, default=0)
    correct_answers: Mapped[int] = mapped_column(Integer, default=0)
    last_updated: Mapped[datetime.datetime] = mapped_column(DateTime, default=lambda: datetime.datetime.now(datetime.UTC), onupdate=lambda: datetime.datetime.now(datetime.UTC))


def is_db_initialized() -> bool:
    """Check if the database is already initialized by checking if tables exist."""
    from sqlalchemy import inspect
    inspector = inspect(engine)
    table_names = inspector.get_table_names()

    required_tables = {'kv_store', 'progress', 'daily_progress'}
    return required_tables.issubset(set(table_names))


def init_db() -> None:
    """Initialize the database by creating all tables."""
    Base.metadata.create_all(bind=engine)


def get_session() -> Session:
    return SessionLocal()


# ----------------------------------------------------------------------
# Key-value store
# ----------------------------------------------------------------------

def get_value(key: str) -> Optional[str]:
    session: Session = get_session()
    try:
        row = session.get(KeyValue, key)
        return row.value if row else None
    finally:
        session.close()


def set_value(key: str, value: str) -> None:
    """Insert or overwrite `key`."""
    session: Session = get_session()
    try:
        row = session.get(KeyValue, key)
        if row is None:
            session.add(KeyValue(key=key, value=value))
        else:
            row.value = value
        session.commit()
    finally:
        session.close()


def delete_value(key: str) -> bool:
    session: Session = get_session()
    try:
        deleted = session.query(KeyValue).filter_by(key=key).delete()
        session.commit()
        return deleted > 0
    finally:
        session.close()


def list_keys(prefix: str = "") -> List[str]:
    session: Session = get_session()
    try:
        query = session.query(KeyValue.key)
        if prefix:
            query = query.filter(KeyValue.key.startswith(prefix))
        return [k for (k,) in query.order_by(KeyValue.key.asc()).all()]
    finally:
        session.close()


def save_api_key(api_key: str) -> None:
    set_value(API_KEY_STORE_KEY, json.dumps(api_key))


def load_api_key() -> Optional[str]:
    raw = get_value(API_KEY_STORE_KEY)
    if not raw:
        return None
    try:
        value = json.loads(raw)
    except ValueError:
        return None
    return value if isinstance(value, str) and value.strip() else None


# ----------------------------------------------------------------------
# Progress (kept by the quiz front ends, not the round engine)
# ----------------------------------------------------------------------

def update_progress(user: str, correct: bool) -> None:
    """Record one answered round for the given user."""
    session: Session = get_session()
    try:
        prog: Optional[Progress] = session.query(Progress).filter_by(user=user).first()
        if not prog:
            prog = Progress(user=user, total_reviews=0, correct_answers=0)
            session.add(prog)
        prog.total_reviews = prog.total_reviews + 1
        if correct:
            prog.correct_answers = prog.correct_answers + 1

        today = datetime.date.today()
        daily = session.query(DailyProgress).filter_by(user=user, date=today).one_or_none()
        if daily is None:
            daily = DailyProgress(user=user, date=today, rounds_answered=0, correct_answers=0)
            session.add(daily)
        daily.rounds_answered = (daily.rounds_answered or 0) + 1
        if correct:
            daily.correct_answers = (daily.correct_answers or 0) + 1
        session.commit()
    finally:
        session.close()


def get_daily_progress(user: str, days: int = 30) -> list[dict[str, object]]:
    """
    Return the last `days` of daily progress stats for a user, ordered by date ascending.
    """
    session: Session = get_session()
    today = datetime.date.today()
    start_date = today - datetime.timedelta(days=days - 1)

    rows = (
        session.query(DailyProgress)
        .filter(DailyProgress.user == user, DailyProgress.date >= start_date)
        .order_by(DailyProgress.date.asc())
        .all()
    )
    session.close()

    return [
        {
            "date": row.date.isoformat(),
            "rounds_answered": row.rounds_answered or 0,
            "correct_answers": row.correct_answers or 0,
        }
        for row in rows
    ]


def get_progress(user: str) -> Optional[dict[str, Any]]:
    session: Session = get_session()
    prog: Optional[Progress] = session.query(Progress).filter_by(user=user).first()
    result = None
    if prog:
        accuracy = (prog.correct_answers / prog.total_reviews * 100) if prog.total_reviews > 0 else 0.0
        result = {
            "total_reviews": prog.total_reviews,
            "correct_answers": prog.correct_answers,
            "accuracy": accuracy,
            "last_updated": prog.last_updated,
        }
    session.close()
    return result


def get_api_token(settings: Optional[Settings] = None) -> str:
    """Token from WANIKANI_API_KEY, falling back to the one saved with save_api_key()."""
    settings = settings or load_settings()
    if settings.api_key:
        return settings.api_key
    token = load_api_key()
    if token:
        return token.strip()
    raise ConfigError(
        "No WaniKani API token found. Set WANIKANI_API_KEY or run 'llm wk-set-key <token>'."
    )
