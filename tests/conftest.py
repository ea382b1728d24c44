"""Shared fixtures: immutable settings and a throwaway SQLite database."""

from datetime import datetime
from typing import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

import models  # noqa: F401
from config import Settings
from database import Base
from models import Transaction, TransactionType, User


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        timezone="UTC",
        log_level="INFO",
        ai_api_key="",
        ai_base_url="http://ai.invalid/",
        ai_models=("model-a",),
        ai_timeout_secs=1.0,
        ai_max_attempts=3,
        ai_base_delay_secs=0.5,
        resend_api_key="",
        mail_sender="Finora <reports@example.com>",
        mail_timeout_secs=1.0,
    )


@pytest.fixture
def session_factory(tmp_path) -> Generator[sessionmaker[Session], None, None]:
    engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    engine.dispose()


def add_user(session: Session, name: str = "Asha", email: str = "asha@example.com") -> User:
    user = User(name=name, email=email)
    session.add(user)
    session.flush()
    return user


def add_transaction(
    session: Session,
    user_id: int,
    type: TransactionType,
    amount_cents: int,
    category: str,
    when: datetime,
    title: str = "Entry",
    **extra,
) -> Transaction:
    txn = Transaction(
        user_id=user_id,
        title=title,
        type=type,
        amount_cents=amount_cents,
        category=category,
        date=when,
        **extra,
    )
    session.add(txn)
    session.flush()
    return txn
