"""
Database configuration and connection management.

This module provides:
- SQLAlchemy Core table definitions for cohort records
- Engine and session management with pooling
- Test database support
"""
from typing import Optional
from contextlib import contextmanager
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    text,
)
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql import func
import os

from ibdaily.core.config import settings


metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour

_engine = None
_SessionLocal = None


users = Table(
    "users",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("email", String(255), nullable=False, server_default=""),
    Column("name", String(255), nullable=True),
    Column("onboarding_completed", Boolean, nullable=False, server_default="0"),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)

cohorts = Table(
    "cohorts",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("join_code", String(16), nullable=False, unique=True),
    Column("status", String(16), nullable=False, server_default="TRIAL"),
    Column("trial_ends_at", DateTime(timezone=True), nullable=False),
    Column("activated_at", DateTime(timezone=True), nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)

cohort_members = Table(
    "cohort_members",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(64), nullable=False),
    Column("cohort_id", String(64), nullable=False),
    Column("role", String(16), nullable=False, server_default="MEMBER"),
    Column("joined_at", DateTime(timezone=True), server_default=func.now()),
    Column("best_streak", Integer, nullable=False, server_default="0"),
    Column("best_rank", Integer, nullable=True),
    UniqueConstraint("user_id", "cohort_id", name="uq_cohort_members_user_cohort"),
    Index("ix_cohort_members_cohort_id", "cohort_id"),
)

submissions = Table(
    "submissions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(64), nullable=False),
    Column("cohort_id", String(64), nullable=False),
    Column("date_key", String(10), nullable=False),
    Column("subject", String(255), nullable=True),
    Column("subject_id", String(64), nullable=True),
    Column("bullet1", Text, nullable=False, server_default=""),
    Column("bullet2", Text, nullable=False, server_default=""),
    Column("bullet3", Text, nullable=False, server_default=""),
    Column("quality_status", String(16), nullable=False, server_default="GOOD"),
    Column("quality_reasons", Text, nullable=False, server_default="[]"),
    Column("created_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("user_id", "cohort_id", "date_key", name="uq_submissions_user_cohort_day"),
    Index("ix_submissions_cohort_date", "cohort_id", "date_key"),
)

subscriptions = Table(
    "subscriptions",
    metadata,
    Column("user_id", String(64), primary_key=True),
    Column("status", String(32), nullable=False),
    Column("current_period_end", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now()),
)

notification_prefs = Table(
    "notification_prefs",
    metadata,
    Column("user_id", String(64), primary_key=True),
    Column("is_enabled", Boolean, nullable=False, server_default="1"),
    Column("remind_minutes_before_cutoff", Integer, nullable=False, server_default="90"),
    Column("last_call_minutes_before_cutoff", Integer, nullable=False, server_default="15"),
    Column("quiet_hours_start", Integer, nullable=True),
    Column("quiet_hours_end", Integer, nullable=True),
)

reminder_logs = Table(
    "reminder_logs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(64), nullable=False),
    Column("cohort_id", String(64), nullable=False),
    Column("date_key", String(10), nullable=False),
    Column("type", String(16), nullable=False),
    Column("sent_at", DateTime(timezone=True), server_default=func.now()),
    UniqueConstraint("user_id", "cohort_id", "date_key", "type", name="uq_reminder_logs_claim"),
    Index("ix_reminder_logs_date_type", "date_key", "type"),
)

subjects = Table(
    "subjects",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("subject_code", String(64), nullable=False, unique=True),
    Column("transcript_name", String(255), nullable=False),
    Column("full_name", String(255), nullable=False),
    Column("group_name", String(255), nullable=False),
    Column("group_number", Integer, nullable=False),
    Column("sl_available", Boolean, nullable=False, server_default="1"),
    Column("hl_available", Boolean, nullable=False, server_default="1"),
    Column("has_units", Boolean, nullable=False, server_default="0"),
)

units = Table(
    "units",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("subject_id", String(64), nullable=False),
    Column("name", String(255), nullable=False),
    Column("order_index", Integer, nullable=False),
    Column("level_scope", String(16), nullable=False, server_default="BOTH"),
    UniqueConstraint("subject_id", "order_index", name="uq_units_subject_order"),
    Index("ix_units_subject_id", "subject_id"),
)

user_subjects = Table(
    "user_subjects",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(64), nullable=False),
    Column("subject_id", String(64), nullable=False),
    Column("level", String(2), nullable=False),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    UniqueConstraint("user_id", "subject_id", name="uq_user_subjects_user_subject"),
    Index("ix_user_subjects_user_id", "user_id"),
)

weekly_unit_selections = Table(
    "weekly_unit_selections",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(64), nullable=False),
    Column("subject_id", String(64), nullable=False),
    Column("unit_id", String(64), nullable=False),
    Column("week_start_date_key", String(10), nullable=False),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    UniqueConstraint("user_id", "subject_id", "week_start_date_key", name="uq_weekly_unit_user_subject_week"),
    Index("ix_weekly_unit_user_week", "user_id", "week_start_date_key"),
)


def get_database_url() -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL")
    if test_url:
        return test_url

    return os.getenv("DATABASE_URL") or settings.DATABASE_URL


def init_engine(database_url: Optional[str] = None):
    """
    Initialize the SQLAlchemy engine.

    Args:
        database_url: Optional override for DATABASE_URL
    """
    global _engine, _SessionLocal

    url = database_url or get_database_url()

    if not url:
        raise ValueError(
            "DATABASE_URL is not configured. "
            "Set DATABASE_URL in environment or .env file."
        )

    if url.startswith("sqlite"):
        # SQLite (local dev, tests) manages its own pool
        _engine = create_engine(url, echo=False)
    else:
        _engine = create_engine(
            url,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            pool_recycle=POOL_RECYCLE,
            pool_pre_ping=True,
            echo=False,
        )

    _SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=_engine
    )

    return _engine


def get_engine():
    """Get the current SQLAlchemy engine."""
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    """Get the session factory."""
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.

    Usage:
        with get_db_session() as session:
            session.execute(...)
    """
    SessionLocal = get_session_factory()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables():
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    metadata.create_all(bind=get_engine())


def drop_all_tables():
    """
    Drop all tables defined in metadata.

    WARNING: This is destructive! Only use in tests or development.
    """
    metadata.drop_all(bind=get_engine())


def check_connection() -> bool:
    """Return True when the configured database answers a trivial query."""
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
